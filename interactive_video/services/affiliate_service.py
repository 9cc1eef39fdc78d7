"""Affiliate program: referral codes, referrals, commissions and affiliate payouts."""

import re
import string

from interactive_video.repositories import affiliate_repo
from interactive_video.repositories.query_utils import snapshot_to_dict

REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_RE = re.compile(r'^[A-Z0-9]{8}$')
MAX_CODE_ATTEMPTS = 10
COMMISSION_TYPES = ('signup', 'subscription', 'purchase', 'view')
COMMISSION_STATUSES = ('pending', 'approved', 'paid', 'rejected')
PAYOUT_METHODS = ('paypal', 'bank_transfer', 'stripe')
OPEN_PAYOUT_STATUSES = ('pending', 'processing')
MAX_LIST_DOCS = 1000
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class AffiliateError(Exception):
    pass


def round_money(value):
    return round(float(value or 0.0), 2)


def normalize_code(raw_code):
    code = str(raw_code or '').strip().upper()
    return code if REFERRAL_CODE_RE.match(code) else ''


def generate_referral_code(db, rng):
    for _ in range(MAX_CODE_ATTEMPTS):
        code = ''.join(rng.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
        if not affiliate_repo.find_by_code(db, code):
            return code
    raise AffiliateError('Could not generate a unique referral code')


def join_program(db, uid, email, *, program, rng, now_ts):
    if not program.get('active'):
        raise AffiliateError('Affiliate program is not active')
    if affiliate_repo.get_affiliate(db, uid):
        raise AffiliateError('You are already an affiliate')
    affiliate = {
        'uid': uid,
        'referral_code': generate_referral_code(db, rng),
        'total_referrals': 0,
        'total_commission': 0.0,
        'unpaid_commission': 0.0,
        'paid_commission': 0.0,
        'status': 'active',
        'payout_method': 'paypal',
        'payout_email': email or '',
        'created_at': now_ts,
        'updated_at': now_ts,
    }
    affiliate_repo.set_affiliate(db, uid, affiliate)
    affiliate['id'] = uid
    return affiliate


def find_active_affiliate(db, raw_code):
    code = normalize_code(raw_code)
    if not code:
        return None
    affiliate = affiliate_repo.find_by_code(db, code)
    if not affiliate or affiliate.get('status') != 'active':
        return None
    return affiliate


def create_referral(db, referred_uid, raw_code, *, firestore_module, now_ts):
    """Attach a new user to the affiliate owning the code. Returns the referral or None."""
    affiliate = find_active_affiliate(db, raw_code)
    if not affiliate or affiliate['id'] == referred_uid:
        return None
    if affiliate_repo.get_referral(db, referred_uid):
        return None
    referral = {
        'affiliate_uid': affiliate['id'],
        'referred_uid': referred_uid,
        'referral_code': affiliate.get('referral_code', ''),
        'status': 'pending',
        'created_at': now_ts,
        'confirmed_at': None,
    }
    affiliate_repo.referral_ref(db, referred_uid).set(referral)
    affiliate_repo.update_affiliate(db, affiliate['id'], {
        'total_referrals': firestore_module.Increment(1),
        'updated_at': now_ts,
    })
    referral['id'] = referred_uid
    return referral


def credit_affiliate(db, affiliate_uid, amount, *, firestore_module, now_ts):
    affiliate_repo.update_affiliate(db, affiliate_uid, {
        'total_commission': firestore_module.Increment(amount),
        'unpaid_commission': firestore_module.Increment(amount),
        'updated_at': now_ts,
    })


def _create_commission_once(db, commission_id, data, *, firestore_module):
    ref = affiliate_repo.commission_ref(db, commission_id)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        if ref.get(transaction=txn).exists:
            return False
        txn.set(ref, data)
        return True

    return _txn(transaction)


def confirm_referral(db, referred_uid, *, program, firestore_module, now_ts):
    """pending -> confirmed, plus an approved signup commission when the program pays one."""
    referral = affiliate_repo.get_referral(db, referred_uid)
    if not referral or referral.get('status') != 'pending':
        return None
    affiliate_repo.referral_ref(db, referred_uid).update({'status': 'confirmed', 'confirmed_at': now_ts})
    referral.update({'status': 'confirmed', 'confirmed_at': now_ts})

    bonus = round_money(program.get('signup_bonus', 0))
    if bonus > 0:
        created = _create_commission_once(db, f"signup__{referred_uid}", {
            'affiliate_uid': referral['affiliate_uid'],
            'referral_id': referred_uid,
            'amount': bonus,
            'type': 'signup',
            'status': 'approved',
            'source_id': referred_uid,
            'created_at': now_ts,
            'updated_at': now_ts,
            'paid_at': None,
        }, firestore_module=firestore_module)
        if created:
            credit_affiliate(db, referral['affiliate_uid'], bonus, firestore_module=firestore_module, now_ts=now_ts)
    return referral


def create_commission(db, referred_uid, base_amount, commission_type, source_id, *, program, firestore_module, now_ts):
    """Pending commission for a confirmed referral. Idempotent per (type, source_id)."""
    if commission_type not in COMMISSION_TYPES or not source_id:
        return None
    if not program.get('active'):
        return None
    referral = affiliate_repo.get_referral(db, referred_uid)
    if not referral or referral.get('status') != 'confirmed':
        return None
    amount = round_money(float(base_amount or 0) * float(program.get('commission_rate', 0) or 0))
    if amount <= 0:
        return None
    commission_id = f"{commission_type}__{source_id}"
    data = {
        'affiliate_uid': referral['affiliate_uid'],
        'referral_id': referred_uid,
        'amount': amount,
        'type': commission_type,
        'status': 'pending',
        'source_id': source_id,
        'created_at': now_ts,
        'updated_at': now_ts,
        'paid_at': None,
    }
    if not _create_commission_once(db, commission_id, data, firestore_module=firestore_module):
        return None
    data['id'] = commission_id
    return data


def approve_commission(db, commission_id, *, firestore_module, now_ts):
    ref = affiliate_repo.commission_ref(db, commission_id)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        commission = snapshot_to_dict(ref.get(transaction=txn))
        if not commission:
            raise AffiliateError('Commission not found')
        if commission.get('status') != 'pending':
            raise AffiliateError(f"Commission is already {commission.get('status')}")
        amount = round_money(commission.get('amount'))
        txn.update(ref, {'status': 'approved', 'updated_at': now_ts})
        txn.update(affiliate_repo.affiliate_ref(db, commission['affiliate_uid']), {
            'total_commission': firestore_module.Increment(amount),
            'unpaid_commission': firestore_module.Increment(amount),
            'updated_at': now_ts,
        })
        commission.update({'status': 'approved', 'updated_at': now_ts})
        return commission

    return _txn(transaction)


def summarize_commissions(commissions):
    stats = {'pending_amount': 0.0, 'approved_amount': 0.0, 'paid_amount': 0.0, 'total_amount': 0.0}
    for commission in commissions:
        amount = float(commission.get('amount', 0) or 0)
        status = commission.get('status')
        if status in ('pending', 'approved', 'paid'):
            stats[f'{status}_amount'] += amount
        if status != 'rejected':
            stats['total_amount'] += amount
    return {key: round_money(value) for key, value in stats.items()}


def open_payout_total(db, affiliate_uid):
    return round_money(sum(
        float(item.get('amount', 0) or 0)
        for item in affiliate_repo.list_payout_requests(db, affiliate_uid, MAX_LIST_DOCS)
        if item.get('status') in OPEN_PAYOUT_STATUSES
    ))


def request_payout(db, uid, amount, *, program, firestore_module, now_ts):
    """Create a pending payout request.

    The affiliate doc is read and written inside the transaction, so two requests for the
    same affiliate cannot both reserve the same unpaid commission.
    """
    amount = round_money(amount)
    minimum = round_money(program.get('min_payout', 0))
    affiliate_ref = affiliate_repo.affiliate_ref(db, uid)
    ref = affiliate_repo.payout_request_ref(db)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        affiliate = snapshot_to_dict(affiliate_ref.get(transaction=txn))
        if not affiliate:
            raise AffiliateError('You are not an affiliate')
        if affiliate.get('status') != 'active':
            raise AffiliateError('Affiliate account is not active')
        if amount < minimum:
            raise AffiliateError(f"Minimum payout is {minimum:.2f}")
        available = round_money(float(affiliate.get('unpaid_commission', 0) or 0) - open_payout_total(db, uid))
        if amount > available:
            raise AffiliateError(f"Amount exceeds unpaid commission ({available:.2f} available)")
        data = {
            'affiliate_uid': uid,
            'amount': amount,
            'status': 'pending',
            'payout_method': affiliate.get('payout_method', 'paypal'),
            'payout_details': {'email': affiliate.get('payout_email', '')},
            'created_at': now_ts,
            'processed_at': None,
            'rejection_reason': '',
        }
        txn.set(ref, data)
        txn.update(affiliate_ref, {'last_payout_request_at': now_ts})
        return data

    data = _txn(transaction)
    data['id'] = ref.id
    return data


def process_payout_request(db, request_id, *, firestore_module, now_ts):
    """Complete a pending affiliate payout and mark approved commissions paid up to its amount."""
    ref = affiliate_repo.payout_request_ref(db, request_id)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        payout = snapshot_to_dict(ref.get(transaction=txn))
        if not payout:
            raise AffiliateError('Payout request not found')
        if payout.get('status') != 'pending':
            raise AffiliateError(f"Payout request is already {payout.get('status')}")
        amount = round_money(payout.get('amount'))
        affiliate_uid = payout['affiliate_uid']

        approved = affiliate_repo.list_commissions(db, affiliate_uid, MAX_LIST_DOCS, status='approved')
        approved.sort(key=lambda item: item.get('created_at', 0) or 0)
        txn.update(ref, {'status': 'completed', 'processed_at': now_ts})
        txn.update(affiliate_repo.affiliate_ref(db, affiliate_uid), {
            'unpaid_commission': firestore_module.Increment(-amount),
            'paid_commission': firestore_module.Increment(amount),
            'updated_at': now_ts,
        })
        remaining = amount
        for commission in approved:
            commission_amount = round_money(commission.get('amount'))
            if commission_amount > remaining:
                break
            txn.update(affiliate_repo.commission_ref(db, commission['id']), {
                'status': 'paid',
                'paid_at': now_ts,
                'updated_at': now_ts,
            })
            remaining = round_money(remaining - commission_amount)
        payout.update({'status': 'completed', 'processed_at': now_ts})
        return payout

    return _txn(transaction)


def reject_payout_request(db, request_id, reason, *, now_ts):
    reason = str(reason or '').strip()[:500]
    if not reason:
        raise AffiliateError('A rejection reason is required')
    payout = affiliate_repo.get_payout_request(db, request_id)
    if not payout:
        raise AffiliateError('Payout request not found')
    if payout.get('status') != 'pending':
        raise AffiliateError(f"Payout request is already {payout.get('status')}")
    updates = {'status': 'rejected', 'rejection_reason': reason, 'processed_at': now_ts}
    affiliate_repo.update_payout_request(db, request_id, updates)
    payout.update(updates)
    return payout


def validate_settings(raw):
    raw = raw if isinstance(raw, dict) else {}
    updates = {}
    errors = {}
    if 'payout_method' in raw:
        method = str(raw.get('payout_method', '') or '').strip().lower()
        if method not in PAYOUT_METHODS:
            errors['payout_method'] = f"Payout method must be one of: {', '.join(PAYOUT_METHODS)}"
        updates['payout_method'] = method
    if 'payout_email' in raw:
        email = str(raw.get('payout_email', '') or '').strip().lower()[:160]
        if email and not EMAIL_RE.match(email):
            errors['payout_email'] = 'Invalid email address'
        updates['payout_email'] = email
    return updates, errors
