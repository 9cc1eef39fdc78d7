"""Business logic handlers for interaction template APIs."""

from interactive_video.services import template_service


def _require_user(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    return decoded_token, None


def list_templates(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    template_type = template_service.normalize_type(request.args.get('type', ''))
    include_public = str(request.args.get('public', '') or '').strip().lower() == 'true'
    limit = template_service.MAX_TEMPLATES_PER_LIST
    try:
        own = app_ctx.templates_repo.list_templates(app_ctx.db, limit, uid=uid, template_type=template_type)
        public = app_ctx.templates_repo.list_templates(
            app_ctx.db, limit, public_only=True, template_type=template_type,
        ) if include_public else []
    except Exception as e:
        app_ctx.logger.error(f"Error listing interaction templates for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load interaction templates'}), 500
    return app_ctx.jsonify({'templates': template_service.visible_templates(own, public, template_type)})


def create_template(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    fields, errors = template_service.validate_template(request.get_json(silent=True) or {})
    if errors:
        return app_ctx.jsonify({'error': 'Invalid template', 'details': errors}), 400
    now_ts = app_ctx.time.time()
    template = {
        'uid': decoded_token['uid'],
        'description': '',
        'is_public': False,
        'is_default': False,
        'style': {},
        'settings': {},
        'behavior': {},
        'created_at': now_ts,
        'updated_at': now_ts,
    }
    template.update(fields)
    try:
        template['id'] = app_ctx.templates_repo.create_template(app_ctx.db, template)
    except Exception as e:
        app_ctx.logger.error(f"Error creating interaction template for {decoded_token['uid']}: {e}")
        return app_ctx.jsonify({'error': 'Could not save interaction template'}), 500
    return app_ctx.jsonify({'template': template}), 201


def get_template(app_ctx, request, template_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    template = app_ctx.templates_repo.get_template(app_ctx.db, template_id)
    if not template or (template.get('uid') != decoded_token['uid'] and not template.get('is_public')):
        return app_ctx.jsonify({'error': 'Template not found'}), 404
    return app_ctx.jsonify({'template': template})


def _load_own_template(app_ctx, request, template_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return None, error
    template = app_ctx.templates_repo.get_template(app_ctx.db, template_id)
    if not template or template.get('uid') != decoded_token['uid']:
        return None, (app_ctx.jsonify({'error': 'Template not found or access denied'}), 404)
    return template, None


def update_template(app_ctx, request, template_id):
    template, error = _load_own_template(app_ctx, request, template_id)
    if error:
        return error
    fields, errors = template_service.validate_template(request.get_json(silent=True) or {}, partial=True)
    if errors:
        return app_ctx.jsonify({'error': 'Invalid template', 'details': errors}), 400
    if not fields:
        return app_ctx.jsonify({'error': 'No updatable fields provided'}), 400
    fields['updated_at'] = app_ctx.time.time()
    try:
        app_ctx.templates_repo.update_template(app_ctx.db, template_id, fields)
    except Exception as e:
        app_ctx.logger.error(f"Error updating interaction template {template_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not update interaction template'}), 500
    template.update(fields)
    return app_ctx.jsonify({'template': template})


def delete_template(app_ctx, request, template_id):
    template, error = _load_own_template(app_ctx, request, template_id)
    if error:
        return error
    if template.get('is_default'):
        return app_ctx.jsonify({'error': 'Cannot delete default template'}), 400
    try:
        app_ctx.templates_repo.delete_template(app_ctx.db, template_id)
    except Exception as e:
        app_ctx.logger.error(f"Error deleting interaction template {template_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete interaction template'}), 500
    return app_ctx.jsonify({'ok': True})
