# Overview: Flask extension instances for the hosted database and hosted auth.

from flask_sqlalchemy import SQLAlchemy

from .auth_client import HostedAuth

db = SQLAlchemy()
hosted_auth = HostedAuth()
