"""Install GC Tracker."""

from setuptools import setup, find_packages

setup(
    name='gc-tracker',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    py_modules=['app', 'wsgi', 'worker', 'celeryconfig'],
    package_data={'gctracker': ['templates/gctracker/*.html',
                                'static/gctracker/*.css']},
    install_requires=[
        "flask",
        "flask-sqlalchemy",
        "sqlalchemy",
        "wtforms[email]",
        "redis",
        "fakeredis",
        "pyjwt",
        "bcrypt",
        "requests",
        "beautifulsoup4",
        "celery",
        "retry",
        "pytz",
        "python-dateutil",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
        ],
    },
    zip_safe=False
)
