"""Signed, expiring video access tokens (HS256 JWTs)."""

import jwt

TOKEN_ISSUER = 'interactive-video'
TOKEN_TYPE = 'video_access'


def generate_secure_token(video_id, uid, secret, now_ts, ttl_seconds):
    expires_at = int(now_ts + ttl_seconds)
    payload = {
        'iss': TOKEN_ISSUER,
        'typ': TOKEN_TYPE,
        'video_id': video_id,
        'uid': uid,
        'iat': int(now_ts),
        'exp': expires_at,
    }
    return jwt.encode(payload, secret, algorithm='HS256'), expires_at


def verify_secure_token(token, secret):
    """Return {video_id, uid, expires_at} for a valid unexpired token, otherwise None."""
    token = str(token or '').strip()
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=['HS256'],
            issuer=TOKEN_ISSUER,
            options={'require': ['exp', 'iss']},
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get('typ') != TOKEN_TYPE:
        return None
    return {'video_id': payload.get('video_id'), 'uid': payload.get('uid'), 'expires_at': payload['exp']}
