from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='MessageTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lang', models.CharField(max_length=10)),
                ('type', models.CharField(max_length=32)),
                ('message', models.TextField()),
            ],
            options={
                'db_table': 'messages',
                'indexes': [models.Index(fields=['type', 'lang'], name='messages_type_lang_idx')],
            },
        ),
    ]
