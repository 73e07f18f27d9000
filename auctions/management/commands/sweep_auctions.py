from django.core.management.base import BaseCommand

from auctions.lifecycle import sweep_due_items


class Command(BaseCommand):
    help = 'Apply every due auction transition (activation, settlement, expiry) once'

    def handle(self, *args, **options):
        transitions = sweep_due_items()
        self.stdout.write(self.style.SUCCESS(f"Applied {transitions} auction transitions"))
