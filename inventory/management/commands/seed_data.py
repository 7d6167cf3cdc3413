"""
Management command to seed the database with sample data.

Generates:
- Depots (the first one serves online checkout)
- Grocery products
- Depot variants with opening stock written through the stock ledger
- Members with opening wallet credits

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db import transaction

from inventory import services as stock
from inventory.models import Depot, DepotProductVariant, Product, StockLedgerEntry
from wallet import services as wallet
from wallet.models import Member, WalletTransaction


class Command(BaseCommand):
    help = 'Seed the database with sample depots, products, stock and members'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--depots',
            type=int,
            default=3,
            help='Number of depots to create (default: 3)',
        )
        parser.add_argument(
            '--members',
            type=int,
            default=20,
            help='Number of members to create (default: 20)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            depots = self._create_depots(options['depots'])
            products = self._create_products()
            self._create_variants(depots, products)
            self._create_members(options['members'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data, ledgers included."""
        from core.models import SequenceCounter
        from orders.models import Order

        Order.objects.all().delete()
        # Ledger rows refuse instance deletes; queryset deletes bypass that
        StockLedgerEntry.objects.all().delete()
        WalletTransaction.objects.all().delete()
        DepotProductVariant.objects.all().delete()
        Product.objects.all().delete()
        Depot.objects.all().delete()
        Member.objects.all().delete()
        SequenceCounter.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_depots(self, count):
        cities = ['Pune', 'Mumbai', 'Nashik', 'Nagpur', 'Kolhapur', 'Satara']

        depots = []
        for i in range(count):
            city = cities[i % len(cities)]
            depot, created = Depot.objects.get_or_create(
                name=f"{city} Depot",
                defaults={
                    'address': f"{random.randint(1, 200)} Market Yard, {city}",
                    'city': city,
                    'contact_person': 'Depot Manager',
                    'contact_number': f"98{random.randint(10000000, 99999999)}",
                    'is_online': i == 0,
                }
            )
            depots.append(depot)
            if created:
                self.stdout.write(f'  Created depot: {depot.name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(depots)} depots'))
        return depots

    def _create_products(self):
        catalog = [
            ('Cow Milk', '1 L', '64.00'),
            ('Buffalo Milk', '1 L', '76.00'),
            ('Curd', '500 g', '45.00'),
            ('Paneer', '200 g', '95.00'),
            ('Ghee', '500 ml', '340.00'),
            ('Butter', '100 g', '58.00'),
            ('Buttermilk', '500 ml', '20.00'),
            ('Shrikhand', '250 g', '110.00'),
            ('Khoa', '250 g', '120.00'),
            ('Cheese Slices', '200 g', '135.00'),
        ]

        products = []
        for name, unit, price in catalog:
            product, _ = Product.objects.get_or_create(
                name=name,
                defaults={'unit': unit, 'price': Decimal(price),
                          'description': f"Fresh {name.lower()}, {unit}."}
            )
            products.append(product)

        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products

    def _create_variants(self, depots, products):
        """Create depot variants and book their opening stock in the ledger."""
        count = 0
        for depot in depots:
            for product in products:
                variant, created = DepotProductVariant.objects.get_or_create(
                    depot=depot,
                    product=product,
                    name=product.unit or 'Default',
                    defaults={
                        'sale_price': product.price,
                        'min_stock_qty': random.randint(5, 20),
                    }
                )
                if not created:
                    continue
                opening = random.randint(0, 200)
                if opening:
                    stock.receive_stock(variant.id, opening, module=stock.MODULE_OPENING)
                count += 1

        self.stdout.write(self.style.SUCCESS(f'Created {count} depot variants with opening stock'))

    def _create_members(self, count):
        first_names = ['Asha', 'Rohan', 'Meera', 'Vikram', 'Sneha', 'Arjun',
                       'Kavya', 'Nikhil', 'Pooja', 'Sameer']

        created = 0
        for i in range(count):
            name = f"{first_names[i % len(first_names)]} {i + 1}"
            member, is_new = Member.objects.get_or_create(
                mobile=f"90000{i:05d}",
                defaults={'name': name, 'email': f"member{i + 1}@example.com"}
            )
            if not is_new:
                continue
            opening = Decimal(random.choice([0, 100, 250, 500, 1000]))
            if opening:
                wallet.credit(member.id, opening, reference='OPENING',
                              notes='Opening wallet balance')
            created += 1

        self.stdout.write(self.style.SUCCESS(f'Created {created} members'))
