"""Install the wxlogin package."""

from setuptools import setup, find_packages

setup(
    name='wxlogin',
    version='0.1.0',
    packages=find_packages(include=['wxlogin', 'wxlogin.*'],
                           exclude=['*.tests', '*.tests.*']),
    scripts=['generate_token.py'],
    python_requires='>=3.9',
    install_requires=[
        "requests",
        "pyjwt>=2",
        "pytz",
        "pydantic>=2",
        "fastapi",
        "python-json-logger>=3.1",
        "click",
    ],
    extras_require={
        "test": [
            "pytest",
            "hypothesis",
            "httpx",
        ],
    },
    zip_safe=False
)
