def init_extensions(app, runtime, config=None) -> None:
    """Expose runtime service readiness on the Flask app.

    Clients themselves stay module-level in runtime so tests can monkeypatch them.
    """
    if app is None:
        return
    if not hasattr(app, 'extensions'):
        return
    state = app.extensions.setdefault('interactive_video', {})
    state['factory_initialized'] = True
    state['firebase_ready'] = runtime.db is not None
    state['stripe_ready'] = bool(runtime.stripe.api_key)
    state['s3_ready'] = bool(runtime.AWS_S3_BUCKET)
    state['smtp_ready'] = bool(runtime.SMTP_HOST)
    state['gemini_ready'] = runtime.client is not None
    if config is not None:
        state['environment'] = config.sentry_environment
