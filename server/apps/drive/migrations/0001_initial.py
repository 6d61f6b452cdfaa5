import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('object_name', models.CharField(blank=True, help_text='Leaf name, empty only for location root markers', max_length=255)),
                ('object_path', models.CharField(default='/', help_text='Normalized virtual directory, e.g. / or /docs/', max_length=1024)),
                ('object_type', models.CharField(default='file', max_length=64)),
                ('mime_type', models.CharField(default='application/octet-stream', max_length=255)),
                ('size', models.BigIntegerField(default=0, help_text='File size in bytes, 0 for folders')),
                ('is_folder', models.BooleanField(default=False)),
                ('is_deleted', models.BooleanField(default=False)),
                ('location', models.CharField(choices=[('Drive', 'Drive'), ('Bin', 'Bin')], default='Drive', max_length=16)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('last_modified', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File record',
                'verbose_name_plural': 'File records',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['owner', 'location', 'object_path'], name='drive_owner_loc_path_idx')],
                'constraints': [models.UniqueConstraint(condition=models.Q(('is_deleted', False)), fields=('owner', 'object_path', 'object_name', 'location'), name='drive_live_name_unique')],
            },
        ),
        migrations.CreateModel(
            name='StorageProfile',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='storage_profile', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('auth_provider', models.CharField(choices=[('local', 'Local'), ('google', 'Google')], default='local', max_length=16)),
                ('storage_limit', models.BigIntegerField(default=5368709120, help_text='Storage quota limit in bytes')),
                ('storage_used', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
                ('last_storage_update', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Storage profile',
                'verbose_name_plural': 'Storage profiles',
                'constraints': [models.CheckConstraint(condition=models.Q(('storage_limit__gte', 0)), name='storage_limit_non_negative'), models.CheckConstraint(condition=models.Q(('storage_used__gte', 0)), name='storage_used_non_negative')],
            },
        ),
    ]
