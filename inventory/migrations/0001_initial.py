from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Depot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Depot name', max_length=200)),
                ('address', models.CharField(blank=True, default='', max_length=300)),
                ('city', models.CharField(blank=True, default='', max_length=100)),
                ('contact_person', models.CharField(blank=True, default='', max_length=100)),
                ('contact_number', models.CharField(blank=True, default='', max_length=20)),
                ('is_online', models.BooleanField(db_index=True, default=False, help_text='Serves online checkout orders')),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether depot is operational')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Depot',
                'verbose_name_plural': 'Depots',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Product name for display and search', max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('unit', models.CharField(blank=True, default='', help_text="Selling unit, e.g. '500 ml' or 'kg'", max_length=30)),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Catalog price', max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['name', 'is_active'], name='inventory_p_name_4a5c1e_idx')],
            },
        ),
        migrations.CreateModel(
            name='DepotProductVariant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text="Variant label, e.g. '1 L bottle'", max_length=100)),
                ('sale_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('closing_qty', models.IntegerField(default=0, help_text='Cached on-hand quantity, mirrors the stock ledger')),
                ('min_stock_qty', models.PositiveIntegerField(default=0, help_text='Threshold for low stock alerts')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('depot', models.ForeignKey(help_text='Depot holding this stock', on_delete=django.db.models.deletion.CASCADE, related_name='variants', to='inventory.depot')),
                ('product', models.ForeignKey(help_text='Catalog product', on_delete=django.db.models.deletion.CASCADE, related_name='depot_variants', to='inventory.product')),
            ],
            options={
                'verbose_name': 'Depot Product Variant',
                'verbose_name_plural': 'Depot Product Variants',
                'ordering': ['depot', 'product', 'name'],
                'indexes': [models.Index(fields=['depot', 'product'], name='inventory_d_depot_i_7b2f90_idx')],
            },
        ),
        migrations.CreateModel(
            name='StockLedgerEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('received_qty', models.PositiveIntegerField(default=0)),
                ('issued_qty', models.PositiveIntegerField(default=0)),
                ('module', models.CharField(db_index=True, help_text='Originating workflow tag', max_length=30)),
                ('foreign_key', models.BigIntegerField(blank=True, help_text='Id of the originating record, e.g. the order id', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('depot', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='inventory.depot')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='inventory.product')),
                ('variant', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='inventory.depotproductvariant')),
            ],
            options={
                'verbose_name': 'Stock Ledger Entry',
                'verbose_name_plural': 'Stock Ledger Entries',
                'ordering': ['-transaction_date', '-id'],
                'indexes': [
                    models.Index(fields=['product', 'variant', 'depot'], name='inventory_s_product_c31d8e_idx'),
                    models.Index(fields=['module', 'foreign_key'], name='inventory_s_module_5e0a47_idx'),
                ],
            },
        ),
    ]
