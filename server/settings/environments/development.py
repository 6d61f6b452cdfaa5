"""
This file contains all the settings that defines the development server.

SECURITY WARNING: don't run with debug turned on in production!
"""

DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1']
