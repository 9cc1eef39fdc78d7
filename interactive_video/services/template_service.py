"""Validation for reusable interaction templates (styling, per-type settings, behavior)."""

from interactive_video.services import element_service

MAX_NAME_LEN = 100
MAX_DESCRIPTION_LEN = 1000
MAX_STYLE_VALUE_LEN = 100
MAX_SETTING_TEXT_LEN = 300
MAX_TEMPLATES_PER_LIST = 200

STYLE_KEYS = (
    'background_color',
    'text_color',
    'title_color',
    'border_color',
    'border_radius',
    'width',
    'max_width',
    'padding',
    'box_shadow',
    'font_family',
    'font_size',
)
BEHAVIOR_KEYS = ('pause_video', 'allow_skipping', 'resume_after_completion', 'allow_resubmission')
TYPE_ALIASES = {'branching': 'decision'}


def normalize_type(raw_type):
    template_type = str(raw_type or '').strip().lower()
    return TYPE_ALIASES.get(template_type, template_type)


def _clean_style(raw, errors):
    if not isinstance(raw, dict):
        errors['style'] = 'Style must be an object'
        return {}
    style = {}
    for key, value in raw.items():
        if key not in STYLE_KEYS:
            continue
        if not isinstance(value, str):
            errors[f'style.{key}'] = 'Must be a string'
            continue
        style[key] = value.strip()[:MAX_STYLE_VALUE_LEN]
    return style


def _clean_setting_value(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return value.strip()[:MAX_SETTING_TEXT_LEN]
    if isinstance(value, dict):
        return {
            str(key)[:60]: item.strip()[:MAX_STYLE_VALUE_LEN]
            for key, item in value.items()
            if isinstance(item, str)
        }
    return None


def _clean_settings(raw, errors):
    if not isinstance(raw, dict):
        errors['settings'] = 'Settings must be an object keyed by element type'
        return {}
    settings = {}
    for raw_type, values in raw.items():
        element_type = normalize_type(raw_type)
        if element_type not in element_service.ELEMENT_TYPES:
            errors[f'settings.{raw_type}'] = 'Unknown element type'
            continue
        if not isinstance(values, dict):
            errors[f'settings.{raw_type}'] = 'Must be an object'
            continue
        cleaned = {}
        for key, value in values.items():
            cleaned_value = _clean_setting_value(value)
            if cleaned_value is None:
                errors[f'settings.{raw_type}.{key}'] = 'Unsupported value'
                continue
            cleaned[str(key)[:60]] = cleaned_value
        settings[element_type] = cleaned
    return settings


def _clean_behavior(raw, errors):
    if not isinstance(raw, dict):
        errors['behavior'] = 'Behavior must be an object'
        return {}
    behavior = {}
    for key in BEHAVIOR_KEYS:
        if key not in raw:
            continue
        if not isinstance(raw[key], bool):
            errors[f'behavior.{key}'] = 'Must be true or false'
            continue
        behavior[key] = raw[key]
    return behavior


def validate_template(raw, partial=False):
    """Return (fields, errors). On partial updates only the supplied keys are checked; type is fixed."""
    raw = raw if isinstance(raw, dict) else {}
    fields = {}
    errors = {}

    if 'name' in raw or not partial:
        name = str(raw.get('name', '') or '').strip()
        if not name or len(name) > MAX_NAME_LEN:
            errors['name'] = f'Name must be 1-{MAX_NAME_LEN} characters'
        fields['name'] = name[:MAX_NAME_LEN]
    if 'description' in raw:
        fields['description'] = str(raw.get('description', '') or '').strip()[:MAX_DESCRIPTION_LEN]
    if 'is_public' in raw:
        if not isinstance(raw['is_public'], bool):
            errors['is_public'] = 'Must be true or false'
        else:
            fields['is_public'] = raw['is_public']
    if not partial:
        template_type = normalize_type(raw.get('type'))
        if template_type not in element_service.ELEMENT_TYPES:
            errors['type'] = f"Type must be one of: {', '.join(element_service.ELEMENT_TYPES)}"
        fields['type'] = template_type
    if 'style' in raw:
        fields['style'] = _clean_style(raw['style'], errors)
    if 'settings' in raw:
        fields['settings'] = _clean_settings(raw['settings'], errors)
    if 'behavior' in raw:
        fields['behavior'] = _clean_behavior(raw['behavior'], errors)
    return fields, errors


def visible_templates(own, public, template_type=''):
    """Merge a user's templates with public ones, newest first, without duplicates."""
    merged = {}
    for template in list(own) + list(public):
        if template_type and template.get('type') != template_type:
            continue
        merged[template['id']] = template
    return sorted(merged.values(), key=lambda item: item.get('updated_at', 0) or 0, reverse=True)
