from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('telegram_id', models.BigIntegerField(blank=True, help_text='Telegram User ID', null=True, unique=True)),
                ('telegram_username', models.CharField(blank=True, max_length=255, null=True)),
                ('telegram_first_name', models.CharField(blank=True, max_length=255, null=True)),
                ('discord_id', models.CharField(blank=True, help_text='Discord User ID', max_length=32, null=True)),
                ('discord_username', models.CharField(blank=True, max_length=255, null=True)),
                ('email', models.EmailField(blank=True, help_text='Почта для доступа к Notion', max_length=254, null=True)),
                ('google_drive_email', models.EmailField(blank=True, help_text='Почта для доступа к Google Drive', max_length=254, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'User',
                'verbose_name_plural': 'Users',
                'db_table': 'users',
                'indexes': [
                    models.Index(fields=['discord_id'], name='users_discord_id_idx'),
                    models.Index(fields=['email'], name='users_email_idx'),
                ],
            },
        ),
    ]
