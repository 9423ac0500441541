from functools import wraps

from flask import render_template, session


TUTOR_SESSION_KEY = 'tutor_authenticated'


def is_tutor() -> bool:
    return bool(session.get(TUTOR_SESSION_KEY))


def tutor_required(view_func):
    """Only let a browser that has entered the tutor PIN reach the view."""
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not is_tutor():
            return render_template('403.html'), 403
        return view_func(*args, **kwargs)

    return wrapped
