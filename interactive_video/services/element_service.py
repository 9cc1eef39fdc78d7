"""Validation and scoring for timestamped interactive elements."""

import re
import uuid
from urllib.parse import urlparse

ELEMENT_TYPES = ('quiz', 'poll', 'hotspot', 'decision')
OPTION_ELEMENT_TYPES = {'quiz', 'poll', 'decision'}
MIN_OPTIONS = 2
MAX_OPTIONS = 10
MAX_ELEMENTS_PER_VIDEO = 200
MAX_TITLE_LEN = 200
MAX_TEXT_LEN = 1000
JUMP_ACTION_RE = re.compile(r'^jump:(\d+(?:\.\d+)?)$')
VIDEO_VISIBILITIES = ('public', 'private', 'unlisted')
VIDEO_SOURCES = ('youtube', 'vimeo', 'dailymotion', 'local')

DEFAULT_INTERACTION_SETTINGS = {
    'pause_on_interaction': True,
    'show_feedback': True,
    'auto_advance': False,
    'prevent_skipping': False,
    'require_completion': False,
}


def infer_video_source(source_url):
    host = (urlparse(str(source_url or '')).hostname or '').lower()
    if host.endswith('youtube.com') or host == 'youtu.be':
        return 'youtube'
    if host.endswith('vimeo.com'):
        return 'vimeo'
    if host.endswith('dailymotion.com') or host == 'dai.ly':
        return 'dailymotion'
    return 'local'


def _as_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _clean_text(value, max_len):
    return str(value or '').strip()[:max_len]


def _validate_options(element_type, raw_options, video_duration, errors):
    if not isinstance(raw_options, list):
        errors['options'] = 'Options must be a list'
        return []
    if not MIN_OPTIONS <= len(raw_options) <= MAX_OPTIONS:
        errors['options'] = f'Provide between {MIN_OPTIONS} and {MAX_OPTIONS} options'
        return []
    options = []
    for index, raw in enumerate(raw_options):
        if not isinstance(raw, dict):
            raw = {'text': raw}
        text = _clean_text(raw.get('text'), MAX_TEXT_LEN)
        if not text:
            errors[f'options.{index}.text'] = 'Option text is required'
            continue
        is_correct = raw.get('is_correct')
        if is_correct is None:
            is_correct = False
        elif not isinstance(is_correct, bool):
            errors[f'options.{index}.is_correct'] = 'is_correct must be true or false'
            is_correct = False
        option_id = _clean_text(raw.get('id'), 64) or uuid.uuid4().hex[:12]
        if any(option['id'] == option_id for option in options):
            errors[f'options.{index}.id'] = 'Option ids must be unique'
        option = {
            'id': option_id,
            'text': text,
            'is_correct': is_correct if element_type == 'quiz' else False,
            'action': '',
        }
        action = _clean_text(raw.get('action'), 64)
        if action:
            match = JUMP_ACTION_RE.match(action)
            if not match:
                errors[f'options.{index}.action'] = 'Action must look like jump:<seconds>'
            elif video_duration and float(match.group(1)) > video_duration:
                errors[f'options.{index}.action'] = 'Jump target is past the end of the video'
            option['action'] = action
        elif element_type == 'decision':
            errors[f'options.{index}.action'] = 'Decision options need a jump:<seconds> action'
        options.append(option)
    if element_type == 'quiz' and options and not any(option['is_correct'] for option in options):
        errors['options'] = 'A quiz needs at least one correct option'
    return options


def validate_element(raw, video_duration=0, element_id=None):
    """Return (element, errors). errors is empty when the element is valid."""
    errors = {}
    if not isinstance(raw, dict):
        return None, {'element': 'Element must be an object'}

    element_type = str(raw.get('type', '') or '').strip().lower()
    if element_type not in ELEMENT_TYPES:
        errors['type'] = f"Type must be one of: {', '.join(ELEMENT_TYPES)}"

    title = _clean_text(raw.get('title'), MAX_TITLE_LEN)
    if not title:
        errors['title'] = 'Title is required'

    timestamp = _as_number(raw.get('timestamp'))
    if timestamp is None or timestamp < 0:
        errors['timestamp'] = 'Timestamp must be a number >= 0'
    elif video_duration and timestamp > video_duration:
        errors['timestamp'] = 'Timestamp is past the end of the video'

    duration = _as_number(raw.get('duration', 10))
    if duration is None or duration <= 0:
        errors['duration'] = 'Duration must be a number > 0'

    feedback = raw.get('feedback') if isinstance(raw.get('feedback'), dict) else {}
    element = {
        'id': element_id or _clean_text(raw.get('id'), 64) or uuid.uuid4().hex[:16],
        'type': element_type,
        'title': title,
        'description': _clean_text(raw.get('description'), MAX_TEXT_LEN),
        'timestamp': timestamp if timestamp is not None else 0,
        'duration': duration if duration is not None else 0,
        'options': [],
        'position': None,
        'feedback': {
            'correct': _clean_text(feedback.get('correct'), MAX_TEXT_LEN),
            'incorrect': _clean_text(feedback.get('incorrect'), MAX_TEXT_LEN),
        },
        'pause_video': bool(raw.get('pause_video', True)),
        'required': bool(raw.get('required', False)),
    }

    if element_type in OPTION_ELEMENT_TYPES:
        element['options'] = _validate_options(element_type, raw.get('options'), video_duration, errors)

    if element_type == 'hotspot':
        position = raw.get('position')
        x = _as_number(position.get('x')) if isinstance(position, dict) else None
        y = _as_number(position.get('y')) if isinstance(position, dict) else None
        if x is None or y is None or not (0 <= x <= 100 and 0 <= y <= 100):
            errors['position'] = 'Hotspot position needs x and y between 0 and 100'
        else:
            element['position'] = {'x': x, 'y': y}

    return element, errors


def sort_elements(elements):
    return sorted(elements, key=lambda item: (float(item.get('timestamp', 0) or 0), item.get('id', '')))


def elements_past_duration(elements, video_duration):
    """Ids of elements whose timestamp or jump targets fall after video_duration."""
    if not video_duration:
        return []
    offending = []
    for element in elements or []:
        timestamp = _as_number(element.get('timestamp')) or 0
        jumps = [
            JUMP_ACTION_RE.match(str(option.get('action') or ''))
            for option in element.get('options', []) or []
        ]
        if timestamp > video_duration or any(match and float(match.group(1)) > video_duration for match in jumps):
            offending.append(element.get('id', ''))
    return offending


def validate_interaction_settings(raw, current=None):
    settings = dict(DEFAULT_INTERACTION_SETTINGS)
    settings.update(current or {})
    if not isinstance(raw, dict):
        return settings, {'settings': 'Settings must be an object'}
    errors = {}
    for key, value in raw.items():
        if key not in DEFAULT_INTERACTION_SETTINGS:
            continue
        if not isinstance(value, bool):
            errors[key] = 'Must be true or false'
            continue
        settings[key] = value
    return settings, errors


def evaluate_response(element, response):
    """Return True/False for quiz answers, None for element types without a right answer."""
    if element.get('type') != 'quiz':
        return None
    selected = response if isinstance(response, list) else [response]
    selected_ids = {str(item) for item in selected if item is not None}
    correct_ids = {option['id'] for option in element.get('options', []) if option.get('is_correct')}
    return bool(selected_ids) and selected_ids == correct_ids


def validate_response(element, response):
    """Check a viewer response against the element. Returns an error string or ''."""
    element_type = element.get('type')
    option_ids = {option['id'] for option in element.get('options', [])}
    if element_type in OPTION_ELEMENT_TYPES:
        selected = response if isinstance(response, list) else [response]
        if not selected or any(str(item) not in option_ids for item in selected):
            return 'Response must reference existing option ids'
        if element_type != 'quiz' and len(selected) != 1:
            return 'Choose exactly one option'
        return ''
    if element_type == 'hotspot':
        if not isinstance(response, dict):
            return 'Hotspot response must include x and y'
        x, y = _as_number(response.get('x')), _as_number(response.get('y'))
        if x is None or y is None or not (0 <= x <= 100 and 0 <= y <= 100):
            return 'Hotspot response must include x and y between 0 and 100'
    return ''


def find_element(video, element_id):
    for element in video.get('interactive_elements', []) or []:
        if element.get('id') == element_id:
            return element
    return None


def public_element(element, include_answers=False):
    """Strip answer keys before sending elements to viewers."""
    data = dict(element)
    if not include_answers:
        data['options'] = [
            {key: value for key, value in option.items() if key != 'is_correct'}
            for option in element.get('options', [])
        ]
    return data
