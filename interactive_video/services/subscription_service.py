"""Viewer subscriptions backed by Stripe Billing."""

from interactive_video.repositories import subscriptions_repo, users_repo

ACTIVE_STATUSES = ('active', 'trialing')
SUBSCRIPTION_STATUSES = ('active', 'trialing', 'past_due', 'canceled', 'incomplete')
MAX_INVOICES = 10


class SubscriptionError(Exception):
    pass


def is_premium(db, uid):
    subscription = subscriptions_repo.get_subscription(db, uid)
    return bool(subscription) and subscription.get('status') in ACTIVE_STATUSES


def list_plans(plans):
    items = []
    for plan_id, plan in plans.items():
        item = {key: value for key, value in plan.items() if key != 'stripe_price_id'}
        item['id'] = plan_id
        items.append(item)
    items.sort(key=lambda item: item['price_cents'])
    return items


def plan_id_for_price(plans, price_id):
    for plan_id, plan in plans.items():
        if price_id and plan.get('stripe_price_id') == price_id:
            return plan_id
    return ''


def get_customer_id(db, uid):
    subscription = subscriptions_repo.get_subscription(db, uid) or {}
    if subscription.get('stripe_customer_id'):
        return subscription['stripe_customer_id']
    user_doc = users_repo.get_doc(db, uid)
    if user_doc.exists:
        return (user_doc.to_dict() or {}).get('stripe_customer_id', '')
    return ''


def ensure_customer(db, stripe_module, uid, email):
    customer_id = get_customer_id(db, uid)
    if customer_id:
        return customer_id
    customer = stripe_module.Customer.create(email=email or None, metadata={'uid': uid})
    customer_id = customer['id']
    users_repo.set_doc(db, uid, {'stripe_customer_id': customer_id}, merge=True)
    return customer_id


def create_checkout_session(db, stripe_module, uid, email, plan_id, *, plans, base_url, creator_id='', video_id=''):
    plan = plans.get(plan_id)
    if not plan:
        raise SubscriptionError('Invalid plan selected')
    if not plan.get('stripe_price_id'):
        raise SubscriptionError('This plan is not available for purchase yet')
    current = subscriptions_repo.get_subscription(db, uid) or {}
    if current.get('status') in ACTIVE_STATUSES:
        raise SubscriptionError('You already have an active subscription')

    customer_id = ensure_customer(db, stripe_module, uid, email)
    metadata = {
        'uid': uid,
        'plan_id': plan_id,
        'creator_id': creator_id or '',
        'video_id': video_id or '',
    }
    return stripe_module.checkout.Session.create(
        mode='subscription',
        customer=customer_id,
        client_reference_id=uid,
        line_items=[{'price': plan['stripe_price_id'], 'quantity': 1}],
        success_url=base_url + '/subscriptions?checkout=success&session_id={CHECKOUT_SESSION_ID}',
        cancel_url=base_url + '/subscriptions?checkout=cancelled',
        metadata=metadata,
        subscription_data={'metadata': metadata},
    )


def require_subscription(db, uid):
    subscription = subscriptions_repo.get_subscription(db, uid)
    if not subscription or not subscription.get('stripe_subscription_id'):
        raise SubscriptionError('No subscription found')
    return subscription


def cancel_subscription(db, stripe_module, uid, now_ts):
    subscription = require_subscription(db, uid)
    if subscription.get('status') not in ACTIVE_STATUSES:
        raise SubscriptionError('No active subscription to cancel')
    stripe_module.Subscription.modify(subscription['stripe_subscription_id'], cancel_at_period_end=True)
    updates = {'cancel_at_period_end': True, 'updated_at': now_ts}
    subscriptions_repo.set_subscription(db, uid, updates)
    subscription.update(updates)
    return subscription


def reactivate_subscription(db, stripe_module, uid, now_ts):
    subscription = require_subscription(db, uid)
    if subscription.get('status') not in ACTIVE_STATUSES or not subscription.get('cancel_at_period_end'):
        raise SubscriptionError('Subscription is not scheduled for cancellation')
    stripe_module.Subscription.modify(subscription['stripe_subscription_id'], cancel_at_period_end=False)
    updates = {'cancel_at_period_end': False, 'updated_at': now_ts}
    subscriptions_repo.set_subscription(db, uid, updates)
    subscription.update(updates)
    return subscription


def change_plan(db, stripe_module, uid, plan_id, *, plans, now_ts):
    plan = plans.get(plan_id)
    if not plan or not plan.get('stripe_price_id'):
        raise SubscriptionError('Invalid plan selected')
    subscription = require_subscription(db, uid)
    if subscription.get('status') not in ACTIVE_STATUSES:
        raise SubscriptionError('No active subscription to update')
    if subscription.get('plan_id') == plan_id:
        raise SubscriptionError('You are already on this plan')

    remote = stripe_module.Subscription.retrieve(subscription['stripe_subscription_id'])
    items = (remote.get('items') or {}).get('data') or []
    if not items:
        raise SubscriptionError('Subscription has no billable items')
    stripe_module.Subscription.modify(
        subscription['stripe_subscription_id'],
        items=[{'id': items[0]['id'], 'price': plan['stripe_price_id']}],
        proration_behavior='create_prorations',
        metadata={'plan_id': plan_id},
    )
    updates = {'plan_id': plan_id, 'updated_at': now_ts}
    subscriptions_repo.set_subscription(db, uid, updates)
    subscription.update(updates)
    return subscription


def create_portal_session(db, stripe_module, uid, return_url):
    customer_id = get_customer_id(db, uid)
    if not customer_id:
        raise SubscriptionError('No billing account found')
    return stripe_module.billing_portal.Session.create(customer=customer_id, return_url=return_url)


def list_invoices(db, stripe_module, uid, limit=MAX_INVOICES):
    customer_id = get_customer_id(db, uid)
    if not customer_id:
        return []
    invoices = stripe_module.Invoice.list(customer=customer_id, limit=limit)
    return [
        {
            'id': invoice.get('id', ''),
            'amount': round(int(invoice.get('amount_paid', 0) or 0) / 100.0, 2),
            'currency': str(invoice.get('currency', 'usd') or 'usd').upper(),
            'status': invoice.get('status', ''),
            'created_at': invoice.get('created', 0),
            'invoice_url': invoice.get('hosted_invoice_url', ''),
            'pdf_url': invoice.get('invoice_pdf', ''),
        }
        for invoice in invoices.get('data', [])
    ]


def _period_bounds(stripe_subscription):
    start = stripe_subscription.get('current_period_start')
    end = stripe_subscription.get('current_period_end')
    if start is None or end is None:
        # Newer API versions keep billing periods on the subscription items.
        items = (stripe_subscription.get('items') or {}).get('data') or []
        if items:
            start = items[0].get('current_period_start', start)
            end = items[0].get('current_period_end', end)
    return start, end


def _first_price_id(stripe_subscription):
    items = (stripe_subscription.get('items') or {}).get('data') or []
    if not items:
        return ''
    return ((items[0].get('price') or {}).get('id')) or ''


def apply_subscription_event(db, stripe_subscription, *, plans, now_ts, deleted=False):
    """Upsert the local record for a Stripe subscription object. Returns the uid or ''."""
    subscription_id = stripe_subscription.get('id', '')
    if not subscription_id:
        return ''
    metadata = stripe_subscription.get('metadata') or {}
    existing = subscriptions_repo.find_by_stripe_subscription_id(db, subscription_id)
    uid = existing['id'] if existing else str(metadata.get('uid', '') or '')
    if not uid:
        return ''

    status = 'canceled' if deleted else str(stripe_subscription.get('status', '') or '')
    if status not in SUBSCRIPTION_STATUSES:
        status = 'incomplete'
    plan_id = plan_id_for_price(plans, _first_price_id(stripe_subscription)) or metadata.get('plan_id', '')
    period_start, period_end = _period_bounds(stripe_subscription)
    data = {
        'uid': uid,
        'status': status,
        'stripe_subscription_id': subscription_id,
        'stripe_customer_id': stripe_subscription.get('customer', '') or '',
        'cancel_at_period_end': bool(stripe_subscription.get('cancel_at_period_end')),
        'current_period_start': period_start,
        'current_period_end': period_end,
        'updated_at': now_ts,
    }
    if plan_id:
        data['plan_id'] = plan_id
    if not existing:
        data['creator_id'] = metadata.get('creator_id', '') or ''
        data['video_id'] = metadata.get('video_id', '') or ''
        data['created_at'] = now_ts
    subscriptions_repo.set_subscription(db, uid, data)
    return uid


def handle_checkout_completed(db, session, *, now_ts):
    """Link Stripe ids from a subscription-mode checkout to the user. Returns the uid or ''."""
    if session.get('mode') != 'subscription':
        return ''
    metadata = session.get('metadata') or {}
    uid = str(metadata.get('uid', '') or session.get('client_reference_id', '') or '')
    if not uid:
        return ''
    customer_id = session.get('customer', '') or ''
    if customer_id:
        users_repo.set_doc(db, uid, {'stripe_customer_id': customer_id}, merge=True)
    subscriptions_repo.set_subscription(db, uid, {
        'uid': uid,
        'stripe_subscription_id': session.get('subscription', '') or '',
        'stripe_customer_id': customer_id,
        'plan_id': metadata.get('plan_id', '') or '',
        'creator_id': metadata.get('creator_id', '') or '',
        'video_id': metadata.get('video_id', '') or '',
        'updated_at': now_ts,
    })
    return uid


def _invoice_subscription_details(invoice):
    details = invoice.get('subscription_details') or {}
    if details:
        return details
    parent = invoice.get('parent') or {}
    return parent.get('subscription_details') or {}


def _invoice_subscription_id(invoice):
    subscription_id = invoice.get('subscription')
    if subscription_id:
        return subscription_id
    return _invoice_subscription_details(invoice).get('subscription') or ''


def _invoice_owner(db, invoice, subscription_id):
    """(uid, linkage) from the local subscription, or from the metadata set at checkout."""
    subscription = subscriptions_repo.find_by_stripe_subscription_id(db, subscription_id)
    if subscription:
        return subscription['id'], subscription
    metadata = _invoice_subscription_details(invoice).get('metadata') or {}
    uid = str(metadata.get('uid', '') or '')
    return uid, metadata


def record_invoice_payment(db, invoice, *, firestore_module, now_ts):
    """Store subscription_payments/{invoice_id} once.

    Returns (payment, created). payment is None for invoices that are not for a subscription.
    Raises SubscriptionError when the invoice cannot be tied to a user yet, so the webhook
    answers with an error and Stripe redelivers it.
    """
    invoice_id = invoice.get('id', '')
    subscription_id = _invoice_subscription_id(invoice)
    if not invoice_id or not subscription_id:
        return None, False
    uid, linkage = _invoice_owner(db, invoice, subscription_id)
    if not uid:
        raise SubscriptionError(f"Invoice {invoice_id} has no known subscriber yet")

    payment = {
        'invoice_id': invoice_id,
        'uid': uid,
        'creator_id': linkage.get('creator_id', '') or '',
        'video_id': linkage.get('video_id', '') or '',
        'plan_id': linkage.get('plan_id', '') or '',
        'stripe_subscription_id': subscription_id,
        'amount': round(int(invoice.get('amount_paid', 0) or 0) / 100.0, 2),
        'currency': str(invoice.get('currency', 'usd') or 'usd').lower(),
        'created_at': now_ts,
    }
    ref = subscriptions_repo.payment_ref(db, invoice_id)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        snapshot = ref.get(transaction=txn)
        if snapshot.exists:
            return snapshot.to_dict() or {}, False
        txn.set(ref, payment)
        return payment, True

    stored, created = _txn(transaction)
    stored['id'] = invoice_id
    return stored, created
