import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('owner_id', models.UUIDField(db_index=True)),
                ('storage_ref', models.CharField(help_text='Key of the raw file in object storage.', max_length=1024)),
                ('display_name', models.CharField(help_text="Name shown to the user (e.g. 'report.pdf.enc').", max_length=255)),
                ('original_name', models.CharField(help_text='Name of the file as first uploaded.', max_length=255)),
                ('is_encrypted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
