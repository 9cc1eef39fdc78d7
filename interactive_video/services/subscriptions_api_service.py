"""Business logic handlers for subscription APIs and the Stripe webhook."""

SUBSCRIPTION_EVENTS = {
    'customer.subscription.created',
    'customer.subscription.updated',
    'customer.subscription.deleted',
}


def get_plans(app_ctx, request):
    return app_ctx.jsonify({
        'stripe_publishable_key': app_ctx.STRIPE_PUBLISHABLE_KEY,
        'plans': app_ctx.subscription_service.list_plans(app_ctx.SUBSCRIPTION_PLANS),
    })


def get_current_subscription(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        subscription = app_ctx.subscriptions_repo.get_subscription(app_ctx.db, uid)
    except Exception as e:
        app_ctx.logger.error(f"Error loading subscription for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load subscription'}), 500
    plan = None
    if subscription and subscription.get('plan_id') in app_ctx.SUBSCRIPTION_PLANS:
        plan = {
            key: value
            for key, value in app_ctx.SUBSCRIPTION_PLANS[subscription['plan_id']].items()
            if key != 'stripe_price_id'
        }
        plan['id'] = subscription['plan_id']
    is_premium = bool(subscription) and subscription.get('status') in app_ctx.subscription_service.ACTIVE_STATUSES
    return app_ctx.jsonify({'subscription': subscription, 'plan': plan, 'is_premium': is_premium})


def create_checkout_session(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Please sign in to continue'}), 401

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    allowed_checkout, retry_after = app_ctx.check_rate_limit(
        key=f"checkout:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.CHECKOUT_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.CHECKOUT_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_checkout:
        app_ctx.log_rate_limit_hit('checkout', retry_after)
        return app_ctx.build_rate_limited_response(
            'Too many checkout attempts. Please wait before starting another checkout.',
            retry_after,
        )

    data = request.get_json(silent=True) or {}
    plan_id = str(data.get('plan_id', '') or '').strip()
    if plan_id not in app_ctx.SUBSCRIPTION_PLANS:
        return app_ctx.jsonify({'error': 'Invalid plan selected'}), 400

    try:
        checkout_session = app_ctx.subscription_service.create_checkout_session(
            app_ctx.db,
            app_ctx.stripe,
            uid,
            email,
            plan_id,
            plans=app_ctx.SUBSCRIPTION_PLANS,
            base_url=app_ctx.get_public_base_url(request),
            creator_id=str(data.get('creator_id', '') or '').strip()[:128],
            video_id=str(data.get('video_id', '') or '').strip()[:128],
        )
        return app_ctx.jsonify({'checkout_url': checkout_session.url})
    except app_ctx.subscription_service.SubscriptionError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Stripe checkout error: {e}")
        return app_ctx.jsonify({'error': 'Could not create checkout session. Please try again.'}), 500


def _subscription_action(app_ctx, request, action, error_message):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        subscription = action(uid)
        return app_ctx.jsonify({'ok': True, 'subscription': subscription})
    except app_ctx.subscription_service.SubscriptionError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"{error_message} for {uid}: {e}")
        return app_ctx.jsonify({'error': error_message}), 500


def cancel_subscription(app_ctx, request):
    return _subscription_action(
        app_ctx,
        request,
        lambda uid: app_ctx.subscription_service.cancel_subscription(app_ctx.db, app_ctx.stripe, uid, app_ctx.time.time()),
        'Could not cancel subscription',
    )


def reactivate_subscription(app_ctx, request):
    return _subscription_action(
        app_ctx,
        request,
        lambda uid: app_ctx.subscription_service.reactivate_subscription(app_ctx.db, app_ctx.stripe, uid, app_ctx.time.time()),
        'Could not reactivate subscription',
    )


def update_subscription(app_ctx, request):
    data = request.get_json(silent=True) or {}
    plan_id = str(data.get('plan_id', '') or '').strip()
    return _subscription_action(
        app_ctx,
        request,
        lambda uid: app_ctx.subscription_service.change_plan(
            app_ctx.db, app_ctx.stripe, uid, plan_id, plans=app_ctx.SUBSCRIPTION_PLANS, now_ts=app_ctx.time.time(),
        ),
        'Could not update subscription',
    )


def create_portal_session(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        session = app_ctx.subscription_service.create_portal_session(
            app_ctx.db, app_ctx.stripe, uid, app_ctx.get_public_base_url(request) + '/subscriptions',
        )
        return app_ctx.jsonify({'portal_url': session.url})
    except app_ctx.subscription_service.SubscriptionError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Stripe billing portal error for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not open billing portal'}), 500


def list_invoices(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        invoices = app_ctx.subscription_service.list_invoices(app_ctx.db, app_ctx.stripe, uid)
        return app_ctx.jsonify({'invoices': invoices})
    except Exception as e:
        app_ctx.logger.error(f"Error fetching invoices for {uid}: {e}")
        return app_ctx.jsonify({'invoices': []})


def handle_invoice_paid(app_ctx, invoice, now_ts):
    payment, created = app_ctx.subscription_service.record_invoice_payment(
        app_ctx.db, invoice, firestore_module=app_ctx.firestore, now_ts=now_ts,
    )
    if not payment:
        app_ctx.logger.info(f"ℹ️ Invoice {invoice.get('id', '')} is not for a subscription.")
        return
    if created:
        app_ctx.log_analytics_event('subscription_paid_backend', source='backend', uid=payment['uid'], properties={
            'amount': payment['amount'],
            'plan_id': payment['plan_id'],
        })
    # Runs on redeliveries too; commission ids are per invoice.
    commission = app_ctx.affiliate_service.create_commission(
        app_ctx.db,
        payment['uid'],
        payment['amount'],
        'subscription',
        payment['invoice_id'],
        program=app_ctx.AFFILIATE_PROGRAM,
        firestore_module=app_ctx.firestore,
        now_ts=now_ts,
    )
    if commission:
        app_ctx.log_event(app_ctx.logging.INFO, 'affiliate_commission_created',
                          affiliate_uid=commission['affiliate_uid'], amount=commission['amount'])


def stripe_webhook(app_ctx, request):
    payload = request.data
    sig_header = request.headers.get('Stripe-Signature', '')

    if app_ctx.STRIPE_WEBHOOK_SECRET:
        try:
            event = app_ctx.stripe.Webhook.construct_event(
                payload, sig_header, app_ctx.STRIPE_WEBHOOK_SECRET
            )
        except ValueError:
            app_ctx.logger.warning("Stripe webhook: Invalid payload")
            return app_ctx.jsonify({'error': 'Invalid payload'}), 400
        except app_ctx.stripe.error.SignatureVerificationError as e:
            app_ctx.logger.warning(f"Stripe webhook signature verification failed: {e}")
            return app_ctx.jsonify({'error': 'Invalid signature'}), 400
        except Exception as e:
            app_ctx.logger.error(f"Stripe webhook unexpected error: {e}")
            return app_ctx.jsonify({'error': 'Webhook processing error'}), 500
    else:
        app_ctx.logger.warning("⚠️ Stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
        return app_ctx.jsonify({'error': 'Webhook not configured'}), 500

    event_type = event.get('type', '')
    data_object = event['data']['object']
    now_ts = app_ctx.time.time()
    try:
        if event_type in SUBSCRIPTION_EVENTS:
            uid = app_ctx.subscription_service.apply_subscription_event(
                app_ctx.db,
                data_object,
                plans=app_ctx.SUBSCRIPTION_PLANS,
                now_ts=now_ts,
                deleted=event_type == 'customer.subscription.deleted',
            )
            if not uid:
                app_ctx.logger.warning(f"⚠️ Subscription {data_object.get('id', '')} has no matching user")
        elif event_type == 'checkout.session.completed':
            uid = app_ctx.subscription_service.handle_checkout_completed(app_ctx.db, data_object, now_ts=now_ts)
            if uid:
                app_ctx.affiliate_service.confirm_referral(
                    app_ctx.db,
                    uid,
                    program=app_ctx.AFFILIATE_PROGRAM,
                    firestore_module=app_ctx.firestore,
                    now_ts=now_ts,
                )
                app_ctx.logger.info(f"✅ Subscription checkout completed for user '{uid}'")
        elif event_type == 'invoice.paid':
            handle_invoice_paid(app_ctx, data_object, now_ts)
    except Exception as e:
        app_ctx.logger.error(f"Stripe webhook handler error for {event_type}: {e}")
        return app_ctx.jsonify({'error': 'Webhook processing error'}), 500

    return app_ctx.jsonify({'received': True})
