import itertools

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from extensions import bcrypt
from models import db, User, Restaurant, Post
from tagging import add_post_tags_to_table

PASSWORD = 'Passw0rd!'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make_user(username=None, password=PASSWORD):
        username = username or f'user{next(counter)}'
        user = User(
            username=username,
            email=f'{username}@example.com',
            password_hash=bcrypt.generate_password_hash(password).decode('utf-8')
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_restaurant(app):
    def _make_restaurant(owner, name='Taco Town', latitude=43.6532, longitude=-79.3832,
                         food_type='Mexican', rate=4.5):
        restaurant = Restaurant(
            user_id=owner.id,
            restaurant_name=name,
            food_type=food_type,
            rate=rate,
            latitude=latitude,
            longitude=longitude
        )
        owner.has_restaurant = True
        db.session.add(restaurant)
        db.session.commit()
        return restaurant
    return _make_restaurant


@pytest.fixture
def make_post(app):
    def _make_post(author, restaurant=None, title='Daily special', content='Fresh tacos', tags=()):
        post = Post(
            user_id=author.id,
            restaurant_id=restaurant.id if restaurant else None,
            post_title=title,
            post_content=content
        )
        db.session.add(post)
        db.session.flush()
        add_post_tags_to_table(post, list(tags))
        db.session.commit()
        return post
    return _make_post


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _auth_headers


@pytest.fixture
def share_location(client):
    def _share_location(latitude, longitude):
        response = client.post('/users/location', json={'latitude': latitude, 'longitude': longitude})
        assert response.status_code == 200
    return _share_location
