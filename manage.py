#!/usr/bin/env python

import os
import sys


def main() -> None:
    """
    Main function.

    It does several things:
    1. Sets default settings module, if it is not set
    2. Warns if Django is not installed
    3. Executes any given command
    """
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'server.settings')

    try:
        from django.core import management  # noqa: WPS433
    except ImportError:
        print(  # noqa: WPS421
            'Looks like Django is not installed or not available '
            'on PYTHONPATH. Did you forget to activate a virtualenv?',
        )
        raise

    management.execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
