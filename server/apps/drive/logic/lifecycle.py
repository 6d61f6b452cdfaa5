"""File lifecycle engine: one entry point for every file operation."""

from typing import final

from server.apps.drive.logic.file_operations import FileOperations
from server.apps.drive.logic.trash_operations import TrashOperations


@final
class FileLifecycleEngine(FileOperations, TrashOperations):
    """Keeps file records, blobs and the cache in step.

    Every mutation reads the record fresh, checks ownership and name
    conflicts, writes the blob store, then the metadata store, then
    recomputes usage where total bytes changed and finally invalidates
    the cache. Mutations return a LifecycleResult; expected refusals
    (conflicts, quota, missing records) are declined results rather
    than exceptions.

    Usage:
        engine = FileLifecycleEngine(metadata, blobs, cache, users)
        result = engine.upload_file(user.id, b'...', 'notes.txt')
        if result.ok:
            engine.move_to_bin(result.record.id, user.id)
    """
