from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('ticket_id', models.CharField(max_length=64)),
                ('position_id', models.CharField(blank=True, max_length=64, null=True)),
                ('lookup_key', models.CharField(max_length=64)),
                ('account', models.CharField(max_length=64)),
                ('broker', models.CharField(max_length=255)),
                ('symbol', models.CharField(max_length=32)),
                ('order_type', models.CharField(max_length=20)),
                ('lots', models.FloatField(default=0)),
                ('open_price', models.FloatField(default=0)),
                ('close_price', models.FloatField(blank=True, null=True)),
                ('stop_loss', models.FloatField(blank=True, null=True)),
                ('take_profit', models.FloatField(blank=True, null=True)),
                ('old_stop_loss', models.FloatField(blank=True, null=True)),
                ('old_take_profit', models.FloatField(blank=True, null=True)),
                ('profit', models.FloatField(blank=True, null=True)),
                ('swap', models.FloatField(blank=True, null=True)),
                ('commission', models.FloatField(blank=True, null=True)),
                ('deal_type', models.CharField(blank=True, max_length=32, null=True)),
                ('deal_volume', models.FloatField(blank=True, null=True)),
                ('deal_profit', models.FloatField(blank=True, null=True)),
                ('deal_swap', models.FloatField(blank=True, null=True)),
                ('partial_close', models.FloatField(blank=True, null=True)),
                ('event_type', models.CharField(max_length=32)),
                ('event_timestamp', models.DateTimeField()),
                ('close_time', models.DateTimeField(blank=True, null=True)),
                ('sector', models.CharField(blank=True, max_length=64, null=True)),
                ('schema_version', models.CharField(blank=True, max_length=32, null=True)),
                ('ea_version', models.CharField(blank=True, max_length=32, null=True)),
                ('comment', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'orders',
                'indexes': [
                    models.Index(fields=['ticket_id'], name='orders_ticket_id_idx'),
                    models.Index(fields=['sector'], name='orders_sector_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('account', 'lookup_key'), name='unique_order_account_lookup_key'),
                ],
            },
        ),
    ]
