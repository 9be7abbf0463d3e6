# ParkEase/controllers/profile_controller.py
from flask import redirect, url_for, request, flash
from flask_login import current_user, login_required, logout_user

from models.models import db
from services.file_store import TentativeUpload
from utils import render_page, prevent_back_history, get_file_store
from validators.rules import FormValidator

AVATAR_FOLDER = 'avatars'
PROFILE_FIELDS = ('phone', 'address', 'bio', 'company_name', 'website')


def init_profile_controller(app):
    """Initializes profile settings routes with the Flask app."""

    @app.route('/settings')
    @login_required
    def settings():
        return redirect(url_for('profile_edit'))

    @app.route('/settings/profile')
    @login_required
    @prevent_back_history
    def profile_edit():
        return render_page('settings/profile',
                           avatarUrl=current_user.avatar_url,
                           profile=current_user.profile_dict())

    @app.route('/settings/profile', methods=['PATCH', 'POST'])
    @login_required
    def profile_update():
        user = current_user
        validator = FormValidator(request.form, request.files)
        validator.name()
        validator.email(ignore_user_id=user.id)
        validator.image('avatar')
        validator.string('phone', pattern=r'^[0-9]{8,20}$')
        validator.string('address', max_length=255)
        validator.string('bio', max_length=1000)
        validator.string('company_name', max_length=255)
        validator.string('website', max_length=255)
        data = validator.validated()

        file_store = get_file_store()
        stale_avatar = None
        with TentativeUpload(file_store, data['avatar'], AVATAR_FOLDER) as upload:
            if upload.path:
                stale_avatar = user.avatar_path
                user.avatar_path = upload.path

            user.name = data['name']
            user.email = data['email']
            for field in PROFILE_FIELDS:
                setattr(user, field, data[field])

            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            upload.commit()

        file_store.delete(stale_avatar)

        flash('Profile updated.', 'success')
        return redirect(url_for('profile_edit'))

    @app.route('/settings/profile', methods=['DELETE'])
    @app.route('/settings/profile/delete', methods=['POST'])
    @login_required
    def profile_destroy():
        user = current_user._get_current_object()
        file_store = get_file_store()
        paths = [user.avatar_path, user.parking_photo_path]
        paths += [path for parking in user.parkings for path in (parking.photo_path, parking.annotated_file_path)]

        logout_user()
        db.session.delete(user)
        db.session.commit()

        for path in paths:
            file_store.delete(path)

        return redirect(url_for('login'))
