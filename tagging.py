# Tag lookup-or-create and the post/user association tables
from flask import current_app
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from forms import normalize_tag_name
from models import db, Tag, PostTag, UserTag


def _lookup_tag(name):
    return Tag.query.filter_by(tag=name).first()


def find_or_create_tag(name):
    """Return the Tag named ``name``, inserting it if it does not exist yet.

    The insert runs inside a SAVEPOINT. When a concurrent request has created
    the same name in the meantime, the unique constraint rejects our insert,
    the savepoint is rolled back and the row the other request wrote is
    looked up instead.
    """
    name = normalize_tag_name(name)
    tag = _lookup_tag(name)
    if tag is not None:
        return tag

    try:
        with db.session.begin_nested():
            tag = Tag(tag=name)
            db.session.add(tag)
    except IntegrityError:
        current_app.logger.info(f"Tag '{name}' was created concurrently, reusing it")
        tag = _lookup_tag(name)
        if tag is None:
            raise
    return tag


def _resolve_tag_ids(tag_list):
    # dict.fromkeys keeps the first occurrence of each id
    return list(dict.fromkeys(find_or_create_tag(name).id for name in tag_list))


def add_post_tags_to_table(post, tag_list):
    """Attach ``tag_list`` to ``post`` through post_tag rows.

    Does not commit; the caller decides the transaction boundary so the post
    and its tags are written together.
    """
    tag_ids = _resolve_tag_ids(tag_list)
    if not tag_ids:
        current_app.logger.info("No tags to insert.")
        return []

    db.session.execute(
        insert(PostTag),
        [{"post_id": post.id, "tag_id": tag_id} for tag_id in tag_ids]
    )
    return tag_ids


def add_user_tags(user, tag_list):
    """Add interest tags to ``user``, skipping the ones already linked. Returns the new tag ids."""
    existing = {row.tag_id for row in UserTag.query.filter_by(user_id=user.id)}
    new_ids = [tag_id for tag_id in _resolve_tag_ids(tag_list) if tag_id not in existing]
    if new_ids:
        db.session.execute(
            insert(UserTag),
            [{"user_id": user.id, "tag_id": tag_id} for tag_id in new_ids]
        )
    db.session.expire(user, ['tags'])
    return new_ids


def remove_user_tag(user, name):
    tag = _lookup_tag(normalize_tag_name(name))
    if tag is None:
        return False
    deleted = UserTag.query.filter_by(user_id=user.id, tag_id=tag.id).delete()
    db.session.expire(user, ['tags'])
    return deleted > 0


def user_tag_ids(user_id):
    return [row.tag_id for row in UserTag.query.filter_by(user_id=user_id).order_by(UserTag.tag_id)]
