"""Seed database with demo data."""
from kct_orders.database import SessionLocal
from kct_orders.models import AutomationRule, Order, OrderItem
from kct_orders.use_cases.order_lifecycle import ensure_queue_entry
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import uuid


def seed():
    """Seed database with demo data."""
    db = SessionLocal()
    now = datetime.now(timezone.utc)

    try:
        wedding_group = uuid.UUID('00000000-0000-0000-0000-000000000901')

        orders_data = [
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000101'),
                'order_number': 'KCT-1001',
                'customer_name': 'James Carter',
                'customer_email': 'james.carter@example.com',
                'total_amount': Decimal('450.00'),
                'status': 'payment_confirmed',
                'source': 'catalog',
                'payment_status': 'paid',
                'items': [('Navy Two-Piece Suit', 1, Decimal('450.00'), False, None)],
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000102'),
                'order_number': 'KCT-1002',
                'customer_name': 'Michael Brooks',
                'customer_email': 'michael.brooks@example.com',
                'total_amount': Decimal('6200.00'),
                'status': 'processing',
                'source': 'stripe',
                'payment_status': 'paid',
                'is_rush_order': True,
                'custom_measurements': True,
                'items': [
                    ('Bespoke Tuxedo', 1, Decimal('4800.00'), False, None),
                    ('Silk Bow Tie', 2, Decimal('700.00'), False, None),
                ],
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000103'),
                'order_number': 'KCT-1003',
                'customer_name': 'Daniel Reyes',
                'customer_email': 'daniel.reyes@example.com',
                'total_amount': Decimal('1350.00'),
                'status': 'payment_confirmed',
                'source': 'mixed',
                'payment_status': 'paid',
                'is_group_order': True,
                'group_order_id': wedding_group,
                'wedding_party_size': 2,
                'event_date': date.today() + timedelta(days=21),
                'bundle_type': 'wedding_package',
                'items': [
                    ('Groom Charcoal Suit', 1, Decimal('950.00'), True, 'wedding_package'),
                    ('Vest and Tie Set', 1, Decimal('400.00'), True, 'wedding_package'),
                ],
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000104'),
                'order_number': 'KCT-1004',
                'customer_name': 'Anthony Price',
                'customer_email': 'anthony.price@example.com',
                'total_amount': Decimal('820.00'),
                'status': 'payment_confirmed',
                'source': 'mixed',
                'payment_status': 'paid',
                'is_group_order': True,
                'group_order_id': wedding_group,
                'wedding_party_size': 2,
                'event_date': date.today() + timedelta(days=21),
                'bundle_type': 'wedding_package',
                'items': [('Groomsman Charcoal Suit', 1, Decimal('820.00'), True, 'wedding_package')],
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000105'),
                'order_number': 'KCT-1005',
                'customer_name': 'Robert Hughes',
                'customer_email': 'robert.hughes@example.com',
                'total_amount': Decimal('180.00'),
                'status': 'pending_payment',
                'source': 'catalog',
                'payment_status': 'pending',
                'items': [('Oxford Dress Shirt', 2, Decimal('90.00'), False, None)],
            },
        ]

        orders = []
        for order_data in orders_data:
            items = order_data.pop('items')
            order = Order(created_at=now, updated_at=now, **order_data)
            db.add(order)
            for name, quantity, price, is_bundle, bundle_type in items:
                order.items.append(OrderItem(
                    product_name=name,
                    quantity=quantity,
                    unit_price=price,
                    source=order.source,
                    is_bundle_item=is_bundle,
                    bundle_type=bundle_type,
                ))
            orders.append(order)

        db.flush()

        # Queue everything that has been paid for
        for order in orders:
            if order.status != 'pending_payment':
                ensure_queue_entry(db=db, order=order, now=now)

        db.add(AutomationRule(
            name='High-value orders to high priority',
            rule_type='priority_assignment',
            conditions={'min_amount': 2500},
            actions={'new_priority': 'high'},
            execution_order=1,
            is_active=True,
        ))

        db.commit()
        print(f"Seeded {len(orders)} orders and 1 automation rule")

    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise

    finally:
        db.close()


if __name__ == "__main__":
    seed()
