# Routes for handling requests
from flask import Blueprint, request, jsonify, current_app, session
from flask_jwt_extended import create_access_token, set_access_cookies, unset_jwt_cookies
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from extensions import bcrypt
from forms import (validate_email, validate_password, require_text, optional_tag_list,
                   optional_rate, optional_text, parse_coordinate)
from geo import kilometers_to_meters, nearby_restaurant_ids
from middleware import auth_required, location_required, store_location, clear_location
from models import db, User, Restaurant, Post, Comment, PostTag
from tagging import add_post_tags_to_table, add_user_tags, remove_user_tag, user_tag_ids

# Create blueprints for different route categories
main_bp = Blueprint('main', __name__)
auth_bp = Blueprint('auth', __name__)
users_bp = Blueprint('users', __name__)
restaurants_bp = Blueprint('restaurants', __name__)
restaurant_post_bp = Blueprint('restaurant_post', __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _bad_request(message, error):
    return jsonify({"message": message, "error": str(error)}), 400


def _server_error(message, error):
    """Roll back the session and answer 500, hiding the cause unless configured otherwise."""
    db.session.rollback()
    current_app.logger.error(f"{message}: {error}", exc_info=True)
    detail = str(error) if current_app.config.get('EXPOSE_ERROR_DETAILS') else "Internal server error"
    return jsonify({"message": message, "error": detail}), 500


def _create_post(user_id, restaurant_id, data):
    """Insert a post and its tags in one transaction and return it."""
    post_title = require_text(data, 'postTitle')
    post_content = require_text(data, 'postContent')
    tags = optional_tag_list(data)

    post = Post(
        user_id=user_id,
        restaurant_id=restaurant_id,
        post_title=post_title,
        post_content=post_content
    )
    db.session.add(post)
    db.session.flush()
    add_post_tags_to_table(post, tags)
    db.session.commit()
    current_app.logger.info(f"User {user_id} created post {post.id} (restaurant {restaurant_id})")
    return post


@main_bp.route('/', methods=['GET'])
def welcome():
    """Welcome endpoint for the API"""
    return jsonify({
        "message": "Welcome to the Social Bites API",
        "endpoints": {
            "auth": "/auth",
            "users": "/users",
            "restaurants": "/restaurant",
            "restaurant_posts": "/restaurant-post"
        }
    }), 200


# Authentication Endpoints
@auth_bp.route('/register', methods=['POST'])
def handle_register():
    """User Registration Endpoint"""
    data = _json_body()

    if not all(key in data for key in ['username', 'email', 'password']):
        return jsonify({"message": "Missing required fields", "error": "username, email and password are required"}), 400

    if not validate_email(data['email']):
        return _bad_request("Invalid email format", data['email'])

    if not validate_password(data['password']):
        return _bad_request("Password does not meet requirements",
                            "at least 8 characters with a letter, a number and one of @$!%*?&.:;")

    try:
        new_user = User(
            username=data['username'],
            email=data['email'],
            password_hash=bcrypt.generate_password_hash(data['password']).decode('utf-8')
        )
        db.session.add(new_user)
        db.session.commit()
        current_app.logger.info(f"Registered user {new_user.id}")
        return jsonify({"message": "User registered successfully", "userId": new_user.id}), 201
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid user data", e)
    except IntegrityError:
        db.session.rollback()
        return jsonify({"message": "Username or email already exists", "error": "conflict"}), 409
    except Exception as e:
        return _server_error("An error occured while registering the user", e)


@auth_bp.route('/login', methods=['POST'])
def handle_login():
    """User Login Endpoint"""
    data = _json_body()

    if not all(key in data for key in ['username', 'password']):
        return jsonify({"message": "Missing username or password", "error": "missing credentials"}), 400

    user = User.query.filter_by(username=data['username']).first()

    if user and bcrypt.check_password_hash(user.password_hash, data['password']):
        access_token = create_access_token(identity=str(user.id))
        response = jsonify({
            "accessToken": access_token,
            "userId": user.id,
            "username": user.username
        })
        set_access_cookies(response, access_token)
        return response, 200

    return jsonify({"message": "Invalid credentials", "error": "unauthorized"}), 401


@auth_bp.route('/logout', methods=['POST'])
def handle_logout():
    response = jsonify({"message": "Logged out successfully"})
    unset_jwt_cookies(response)
    session.clear()
    return response, 200


# User Endpoints
@users_bp.route('/profile', methods=['GET'])
@auth_required
def show_user_profile(user_id):
    """Get current user's profile"""
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"message": "User not found"}), 404

    profile = user.to_dict()
    profile.update({
        "tags": [tag.tag for tag in user.tags],
        "postsCount": user.posts.count(),
        "commentsCount": user.comments.count()
    })
    return jsonify(profile), 200


@users_bp.route('/tags', methods=['GET'])
@auth_required
def get_user_tags(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"message": "User not found"}), 404
    return jsonify([tag.to_dict() for tag in user.tags]), 200


@users_bp.route('/tags', methods=['POST'])
@auth_required
def add_interest_tags(user_id):
    try:
        tags = optional_tag_list(_json_body())
        if not tags:
            return _bad_request("No tags supplied", "'tags' must contain at least one tag")

        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"message": "User not found"}), 404

        added = add_user_tags(user, tags)
        db.session.commit()
        return jsonify({
            "message": "Tags added successfully",
            "added": len(added),
            "tags": [tag.tag for tag in user.tags]
        }), 201
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid tags", e)
    except Exception as e:
        return _server_error("An error occured while adding tags", e)


@users_bp.route('/tags/<string:tag_name>', methods=['DELETE'])
@auth_required
def delete_interest_tag(tag_name, user_id):
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"message": "User not found"}), 404

        if not remove_user_tag(user, tag_name):
            return jsonify({"message": "Tag not found"}), 404

        db.session.commit()
        return jsonify({"message": "Tag removed successfully"}), 200
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid tag", e)
    except Exception as e:
        return _server_error("An error occured while removing the tag", e)


@users_bp.route('/location', methods=['POST'])
def share_location():
    data = _json_body()
    try:
        latitude = parse_coordinate(data, 'latitude', 90)
        longitude = parse_coordinate(data, 'longitude', 180)
    except ValueError as e:
        return _bad_request("Invalid location", e)

    store_location(latitude, longitude)
    return jsonify({"message": "Location shared", "latitude": latitude, "longitude": longitude}), 200


@users_bp.route('/location', methods=['DELETE'])
def revoke_location():
    clear_location()
    return jsonify({"message": "Location sharing disabled"}), 200


@users_bp.route('/posts', methods=['POST'])
@auth_required
def create_user_post(user_id):
    """Create a post that is not tied to any restaurant"""
    try:
        post = _create_post(user_id, None, _json_body())
        return jsonify({
            "message": "The post is created successfully",
            "postTitle": post.post_title
        }), 201
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid post", e)
    except Exception as e:
        return _server_error("An error occured while creating a post", e)


@users_bp.route('/posts', methods=['GET'])
@auth_required
def get_current_user_posts(user_id):
    try:
        posts = Post.query.filter(Post.user_id == user_id, Post.restaurant_id.is_(None))\
            .order_by(Post.id).all()
        return jsonify([post.to_dict() for post in posts]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for posts", e)


# Restaurant Endpoints
@restaurants_bp.route('/', methods=['GET'])
def get_restaurants():
    try:
        restaurants = Restaurant.query.order_by(Restaurant.id).all()
        return jsonify([restaurant.to_dict() for restaurant in restaurants]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for restaurants", e)


@restaurants_bp.route('/<int:restaurant_id>', methods=['GET'])
def get_restaurant(restaurant_id):
    try:
        restaurant = db.session.get(Restaurant, restaurant_id)
        if not restaurant:
            return jsonify({"message": "Restaurant not found"}), 404
        return jsonify(restaurant.to_dict()), 200
    except Exception as e:
        return _server_error("An error occured when fetching for restaurants", e)


@restaurants_bp.route('/', methods=['POST'])
@auth_required
def create_restaurant(user_id):
    data = _json_body()
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"message": "User not found"}), 404
        if user.has_restaurant or user.restaurants.count() > 0:
            return jsonify({"message": "User already owns a restaurant", "error": "conflict"}), 409

        restaurant = Restaurant(
            user_id=user_id,
            restaurant_name=require_text(data, 'restaurantName'),
            food_type=optional_text(data, 'foodType'),
            rate=optional_rate(data),
            latitude=parse_coordinate(data, 'latitude', 90),
            longitude=parse_coordinate(data, 'longitude', 180)
        )
        user.has_restaurant = True
        db.session.add(restaurant)
        db.session.commit()
        current_app.logger.info(f"User {user_id} created restaurant {restaurant.id}")
        return jsonify({
            "message": "The restaurant is created successfully",
            "restaurant": restaurant.to_dict()
        }), 201
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid restaurant", e)
    except Exception as e:
        return _server_error("An error occured while creating a restaurant", e)


@restaurants_bp.route('/search', methods=['GET'])
def search_restaurants():
    term = request.args.get('search', '', type=str).strip()
    if not term:
        return _bad_request("Search term is required", "'search' query parameter is empty")
    try:
        restaurants = Restaurant.query.filter(Restaurant.restaurant_name.ilike(f'%{term}%'))\
            .order_by(Restaurant.id).all()
        return jsonify([restaurant.to_dict() for restaurant in restaurants]), 200
    except Exception as e:
        return _server_error("An error occured when searching for restaurants", e)


@restaurants_bp.route('/nearby_restaurants/<string:radius_km>', methods=['GET'])
@location_required
def get_nearby_restaurants(radius_km, user_location):
    try:
        radius_meters = kilometers_to_meters(radius_km)
    except ValueError as e:
        return _bad_request("Invalid radius", e)

    try:
        ids = nearby_restaurant_ids(user_location.latitude, user_location.longitude, radius_meters)
        if not ids:
            return jsonify({"message": "No restaurant nearby"}), 404
        restaurants = Restaurant.query.filter(Restaurant.id.in_(ids)).order_by(Restaurant.id).all()
        return jsonify([restaurant.to_dict() for restaurant in restaurants]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for restaurants", e)


@restaurants_bp.route('/settings/delete', methods=['DELETE'])
@auth_required
def delete_restaurant(user_id):
    """Delete the caller's restaurant together with its posts"""
    try:
        restaurant = Restaurant.query.filter_by(user_id=user_id).first()
        if not restaurant:
            return jsonify({"message": "Restaurant not found"}), 404

        restaurant_id = restaurant.id
        db.session.delete(restaurant)
        user = db.session.get(User, user_id)
        user.has_restaurant = False
        db.session.commit()
        current_app.logger.info(f"User {user_id} deleted restaurant {restaurant_id}")
        return jsonify({"message": "The restaurant is deleted successfully"}), 200
    except Exception as e:
        return _server_error("An error occured while deleting the restaurant", e)


# Restaurant Post Endpoints

# get all post of a restaurant based on its restaurantId
@restaurant_post_bp.route('/<int:restaurant_id>', methods=['GET'])
def get_restaurant_posts(restaurant_id):
    try:
        posts = Post.query.filter_by(restaurant_id=restaurant_id).order_by(Post.id).all()
        return jsonify([post.to_dict() for post in posts]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for restaurants", e)


# only the owner of the restaurant may post under it
@restaurant_post_bp.route('/<int:restaurant_id>', methods=['POST'])
@auth_required
def create_restaurant_post(restaurant_id, user_id):
    try:
        restaurant = db.session.get(Restaurant, restaurant_id)
        if not restaurant:
            return jsonify({"message": "Restaurant not found"}), 404
        if restaurant.user_id != user_id:
            return jsonify({"message": "You are not the owner of the restaurant. Access denied"}), 403

        post = _create_post(user_id, restaurant_id, _json_body())
        return jsonify({
            "message": "The post is created successfully",
            "postTitle": post.post_title
        }), 201
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid post", e)
    except Exception as e:
        return _server_error("An error occured while creating a post", e)


@restaurant_post_bp.route('/<int:restaurant_id>/<int:post_id>/comment', methods=['POST'])
@auth_required
def create_comment(restaurant_id, post_id, user_id):
    try:
        post = Post.query.filter_by(id=post_id, restaurant_id=restaurant_id).first()
        if not post:
            return jsonify({"message": "Post Not Found"}), 404

        new_comment = Comment(
            user_id=user_id,
            post_id=post.id,
            content=require_text(_json_body(), 'content')
        )
        db.session.add(new_comment)
        db.session.commit()

        return jsonify({
            "message": "The comment is created successfully",
            "content": new_comment.content
        }), 201
    except ValueError as e:
        db.session.rollback()
        return _bad_request("Invalid comment", e)
    except Exception as e:
        return _server_error("An error occured while creating a comment", e)


# an empty result is reported as not found, whether or not the post exists
@restaurant_post_bp.route('/<int:post_id>/comment', methods=['GET'])
def get_post_comments(post_id):
    try:
        comments = Comment.query.filter_by(post_id=post_id).order_by(Comment.id).all()
        if not comments:
            return jsonify({"message": "No Comments Found"}), 404
        return jsonify([comment.to_dict() for comment in comments]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for comments", e)


@restaurant_post_bp.route('/user/nearby_post/<string:radius_km>', methods=['GET'])
@location_required
def get_nearby_posts(radius_km, user_location):
    try:
        radius_meters = kilometers_to_meters(radius_km)
    except ValueError as e:
        return _bad_request("Invalid radius", e)

    try:
        ids = nearby_restaurant_ids(user_location.latitude, user_location.longitude, radius_meters)
        if not ids:
            return jsonify({"message": "No restaurant nearby"}), 404

        posts = Post.query.filter(Post.restaurant_id.in_(ids)).order_by(Post.id).all()
        return jsonify([post.to_dict() for post in posts]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for restaurants", e)


@restaurant_post_bp.route('/user/interested_post', methods=['GET'])
@auth_required
def get_interested_posts(user_id):
    """Posts carrying any of the caller's interest tags"""
    try:
        tag_ids = user_tag_ids(user_id)
        if not tag_ids:
            return jsonify({"message": "No Tags Interested"}), 404

        post_ids = select(PostTag.post_id).where(PostTag.tag_id.in_(tag_ids))
        posts = Post.query.filter(Post.id.in_(post_ids)).order_by(Post.id).all()
        if not posts:
            return jsonify({"message": "No Post Interested"}), 404
        return jsonify([post.to_dict() for post in posts]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for posts", e)


# user posts (no restaurant) are not part of this feed
@restaurant_post_bp.route('/', methods=['GET'])
def get_all_restaurant_posts():
    try:
        posts = Post.query.filter(Post.restaurant_id.isnot(None)).order_by(Post.id).all()
        return jsonify([post.to_dict() for post in posts]), 200
    except Exception as e:
        return _server_error("An error occured when fetching for posts", e)
