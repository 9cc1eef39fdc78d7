"""Business logic handlers for browsing categories and tags."""

from collections import Counter

MAX_CATEGORIES = 100
MAX_CATALOG_SCAN = 2000
POPULAR_TAGS_LIMIT = 30


def count_tags(videos, limit=None):
    counts = Counter()
    for video in videos:
        tags = video.get('tags') if isinstance(video.get('tags'), list) else []
        counts.update({str(tag) for tag in tags if tag})
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    if limit:
        ranked = ranked[:limit]
    return [{'name': name, 'count': count} for name, count in ranked]


def _public_videos(app_ctx, category=''):
    docs = app_ctx.videos_repo.list_public(app_ctx.db, MAX_CATALOG_SCAN, app_ctx.firestore, category=category)
    return [doc.to_dict() or {} for doc in docs]


def list_categories(app_ctx, request):
    try:
        categories = app_ctx.categories_repo.list_categories(app_ctx.db, MAX_CATEGORIES, app_ctx.firestore)
        video_counts = Counter(video.get('category', '') for video in _public_videos(app_ctx))
    except Exception as e:
        app_ctx.logger.error(f"Error listing categories: {e}")
        return app_ctx.jsonify({'error': 'Could not load categories'}), 500
    return app_ctx.jsonify({'categories': [{
        'id': category['id'],
        'name': category.get('name', ''),
        'slug': category.get('slug', ''),
        'description': category.get('description', ''),
        'icon': category.get('icon', ''),
        'order': category.get('order', 0),
        'video_count': video_counts.get(category.get('slug', ''), 0),
    } for category in categories]})


def list_category_tags(app_ctx, request, slug):
    slug = str(slug or '').strip().lower()
    try:
        category = app_ctx.categories_repo.find_by_slug(app_ctx.db, slug)
        if not category:
            return app_ctx.jsonify({'error': 'Category not found'}), 404
        tags = count_tags(_public_videos(app_ctx, category=slug))
    except Exception as e:
        app_ctx.logger.error(f"Error listing tags for category {slug}: {e}")
        return app_ctx.jsonify({'error': 'Could not load category tags'}), 500
    return app_ctx.jsonify({'tags': tags})


def list_popular_tags(app_ctx, request):
    try:
        tags = count_tags(_public_videos(app_ctx), limit=POPULAR_TAGS_LIMIT)
    except Exception as e:
        app_ctx.logger.error(f"Error listing popular tags: {e}")
        return app_ctx.jsonify({'error': 'Could not load popular tags'}), 500
    return app_ctx.jsonify({'tags': tags})
