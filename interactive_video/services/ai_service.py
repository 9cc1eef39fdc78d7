"""Gemini-backed drafting of interactive elements."""

import json

from interactive_video.services import element_service

PROMPT_INTERACTION_DRAFTS = """You are an expert in creating interactive video elements. Generate {count} interactive elements for a video.

Video details:
- Title: {title}
- Description: {description}
- Duration: {duration} seconds
- Tags: {tags}

Settings:
- Interaction type: {interaction_type}
- Difficulty level: {difficulty}
- Style: {style}
- Target audience: {audience}
- Language: {language}

Space the elements according to a density of {density}% (higher means more clustered, lower means more spread out).
Every timestamp must be between 0 and the video duration.

REQUIRED OUTPUT FORMAT:
Respond with strictly valid JSON matching this structure:
{{
  "interactions": [
    {{
      "type": "quiz | poll | hotspot | decision",
      "title": "string",
      "description": "string",
      "timestamp": 0,
      "duration": 10,
      "options": [{{"text": "string", "is_correct": false, "action": "jump:<seconds> (decision only)"}}],
      "position": {{"x": 50, "y": 50}},
      "feedback": {{"correct": "string", "incorrect": "string"}}
    }}
  ]
}}
Quiz, poll and decision elements need 2-10 options. A quiz needs at least one correct option.
Hotspots need a position with x and y between 0 and 100.

Creator instructions:
{prompt}
{transcript_block}"""

INTERACTION_TYPES = ('auto', 'quiz', 'poll', 'hotspot', 'decision')
DIFFICULTIES = ('easy', 'medium', 'hard')
STYLES = ('educational', 'entertaining', 'professional', 'casual')
MIN_COUNT = 1
MAX_COUNT = 10
MIN_DENSITY = 10
MAX_DENSITY = 100
MAX_PROMPT_LEN = 4000
MAX_TRANSCRIPT_LEN = 60000
MAX_OUTPUT_TOKENS = 8192


class AIUnavailableError(Exception):
    pass


class AIGenerationError(Exception):
    pass


def validate_generation_request(raw):
    """Return (params, errors) for a draft generation payload."""
    raw = raw if isinstance(raw, dict) else {}
    errors = {}
    prompt = str(raw.get('prompt', '') or '').strip()[:MAX_PROMPT_LEN]
    if not prompt:
        errors['prompt'] = 'Prompt is required'
    transcript = str(raw.get('transcript', '') or '').strip()[:MAX_TRANSCRIPT_LEN]

    interaction_type = str(raw.get('type', 'auto') or 'auto').strip().lower()
    if interaction_type not in INTERACTION_TYPES:
        errors['type'] = f"Type must be one of: {', '.join(INTERACTION_TYPES)}"

    count = raw.get('count', 3)
    if isinstance(count, bool) or not isinstance(count, int) or not MIN_COUNT <= count <= MAX_COUNT:
        errors['count'] = f'Count must be an integer between {MIN_COUNT} and {MAX_COUNT}'
    density = raw.get('density', 50)
    if isinstance(density, bool) or not isinstance(density, (int, float)) or not MIN_DENSITY <= density <= MAX_DENSITY:
        errors['density'] = f'Density must be between {MIN_DENSITY} and {MAX_DENSITY}'

    raw_settings = raw.get('settings') if isinstance(raw.get('settings'), dict) else {}
    settings = {
        'difficulty': str(raw_settings.get('difficulty', 'medium') or 'medium').strip().lower(),
        'style': str(raw_settings.get('style', 'educational') or 'educational').strip().lower(),
        'language': str(raw_settings.get('language', 'english') or 'english').strip()[:40],
        'audience': str(raw_settings.get('audience', 'general') or 'general').strip()[:80],
    }
    if settings['difficulty'] not in DIFFICULTIES:
        errors['settings.difficulty'] = f"Difficulty must be one of: {', '.join(DIFFICULTIES)}"
    if settings['style'] not in STYLES:
        errors['settings.style'] = f"Style must be one of: {', '.join(STYLES)}"

    return {
        'prompt': prompt,
        'transcript': transcript,
        'interaction_type': interaction_type,
        'count': count,
        'density': density,
        'settings': settings,
    }, errors


def build_prompt(video, prompt, transcript, interaction_type, count, density, settings):
    tags = video.get('tags') or []
    return PROMPT_INTERACTION_DRAFTS.format(
        count=count,
        title=video.get('title', ''),
        description=video.get('description') or 'Not provided',
        duration=video.get('duration') or 'Unknown',
        tags=', '.join(tags) if tags else 'None',
        interaction_type='Mixed (choose appropriate types)' if interaction_type == 'auto' else interaction_type,
        difficulty=settings.get('difficulty', 'medium'),
        style=settings.get('style', 'educational'),
        audience=settings.get('audience', 'general'),
        language=settings.get('language', 'english'),
        density=density,
        prompt=prompt,
        transcript_block=f"\nVideo transcript:\n{transcript}" if transcript else '',
    )


def extract_json_payload(raw_text):
    if not raw_text:
        return None
    text = raw_text.strip()
    if text.startswith('```'):
        lines = text.splitlines()
        if len(lines) >= 3 and lines[0].startswith('```') and lines[-1].strip() == '```':
            text = '\n'.join(lines[1:-1]).strip()
    start = text.find('{')
    if start == -1:
        return None
    decoder = json.JSONDecoder()
    try:
        parsed, _ = decoder.raw_decode(text[start:])
        return parsed
    except json.JSONDecodeError:
        end = text.rfind('}')
        if end == -1 or end <= start:
            return None
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None


def sanitize_drafts(items, video_duration, count, interaction_type):
    if not isinstance(items, list):
        return []
    drafts = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if str(item.get('type', '')).strip().lower() == 'branching':
            item = dict(item, type='decision')
        element, errors = element_service.validate_element(item, video_duration=video_duration)
        if errors:
            continue
        if interaction_type != 'auto' and element['type'] != interaction_type:
            continue
        drafts.append(element)
        if len(drafts) >= count:
            break
    return element_service.sort_elements(drafts)


def generate_interactions(client, model, types, *, video, prompt, transcript, interaction_type, count, density, settings):
    """Draft elements with Gemini. Drafts go through the element validator and are not saved."""
    if client is None:
        raise AIUnavailableError('AI generation is not configured')
    prompt_text = build_prompt(video, prompt, transcript, interaction_type, count, density, settings)
    response = client.models.generate_content(
        model=model,
        contents=[types.Content(role='user', parts=[types.Part.from_text(text=prompt_text)])],
        config=types.GenerateContentConfig(max_output_tokens=MAX_OUTPUT_TOKENS, temperature=0.7),
    )
    parsed = extract_json_payload(getattr(response, 'text', '') or '')
    if not isinstance(parsed, dict):
        raise AIGenerationError('Interaction drafts JSON parsing failed.')
    video_duration = float(video.get('duration', 0) or 0)
    return sanitize_drafts(parsed.get('interactions', []), video_duration, count, interaction_type)
