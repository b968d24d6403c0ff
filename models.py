# Database models
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

from forms import normalize_tag_name, validate_email

db = SQLAlchemy()


def _isoformat(value):
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UserTag(db.Model):
    __tablename__ = 'user_tag'
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True)
    tag_id = db.Column(db.Integer, db.ForeignKey('tag.id', ondelete='CASCADE'), primary_key=True)

    def to_dict(self):
        return {"userId": self.user_id, "tagId": self.tag_id}


class PostTag(db.Model):
    __tablename__ = 'post_tag'
    post_id = db.Column(db.Integer, db.ForeignKey('post.id', ondelete='CASCADE'), primary_key=True)
    tag_id = db.Column(db.Integer, db.ForeignKey('tag.id', ondelete='CASCADE'), primary_key=True)

    def to_dict(self):
        return {"postId": self.post_id, "tagId": self.tag_id}


class User(TimestampMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    has_restaurant = db.Column(db.Boolean, default=False, nullable=False)

    tags = db.relationship('Tag', secondary='user_tag', order_by='Tag.id', viewonly=True)
    restaurants = db.relationship('Restaurant', backref='owner', lazy='dynamic')
    posts = db.relationship('Post', backref='author', lazy='dynamic')
    comments = db.relationship('Comment', backref='author', lazy='dynamic')

    @validates('username')
    def validate_username(self, key, username):
        if not isinstance(username, str) or not username.strip():
            raise ValueError("Username is required")
        return username.strip()

    @validates('email')
    def check_email(self, key, email):
        if email is not None and not validate_email(email):
            raise ValueError("Invalid email format")
        return email

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "hasRestaurant": self.has_restaurant,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at)
        }


class Tag(TimestampMixin, db.Model):
    __tablename__ = 'tag'
    id = db.Column(db.Integer, primary_key=True)
    tag = db.Column(db.String(255), unique=True, nullable=False)

    @validates('tag')
    def validate_tag(self, key, name):
        return normalize_tag_name(name)

    def to_dict(self):
        return {"id": self.id, "tag": self.tag}


class Restaurant(TimestampMixin, db.Model):
    __tablename__ = 'restaurant'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    restaurant_name = db.Column(db.String(255), nullable=False)
    food_type = db.Column(db.String(255))
    rate = db.Column(db.Float, default=0, nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)

    posts = db.relationship('Post', backref='restaurant', cascade='all')

    @validates('rate')
    def validate_rate(self, key, rate):
        if rate is None:
            return 0
        if not 0 <= rate <= 5:
            raise ValueError("Rate must be between 0 and 5")
        return rate

    @validates('latitude')
    def validate_latitude(self, key, latitude):
        if not -90 <= latitude <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return latitude

    @validates('longitude')
    def validate_longitude(self, key, longitude):
        if not -180 <= longitude <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        return longitude

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "restaurantName": self.restaurant_name,
            "foodType": self.food_type,
            "rate": self.rate,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at)
        }


class Post(TimestampMixin, db.Model):
    __tablename__ = 'post'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    # NULL marks a user post that is not tied to a restaurant
    restaurant_id = db.Column(db.Integer, db.ForeignKey('restaurant.id'), nullable=True)
    post_title = db.Column(db.String(255), nullable=False)
    post_content = db.Column(db.Text, nullable=False)

    tags = db.relationship('Tag', secondary='post_tag', order_by='Tag.id', viewonly=True)
    comments = db.relationship('Comment', backref='post', cascade='all')
    tag_links = db.relationship('PostTag', cascade='all')

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "restaurantId": self.restaurant_id,
            "postTitle": self.post_title,
            "postContent": self.post_content,
            "tags": [tag.tag for tag in self.tags],
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at)
        }


class Comment(TimestampMixin, db.Model):
    __tablename__ = 'comment'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    post_id = db.Column(db.Integer, db.ForeignKey('post.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)

    @validates('content')
    def validate_content(self, key, content):
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Comment content is required")
        return content

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "postId": self.post_id,
            "content": self.content,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at)
        }
