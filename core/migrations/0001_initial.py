from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(help_text="Bucket key, e.g. 'order:2526' or 'invoice:SNF-2526'", max_length=64, unique=True)),
                ('last_value', models.PositiveIntegerField(default=0, help_text='Last sequence number handed out in this bucket')),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Sequence Counter',
                'verbose_name_plural': 'Sequence Counters',
                'ordering': ['key'],
            },
        ),
    ]
