"""
Settings loader for the SmartEnrich service.

`DJANGO_ENV` picks the module: "production", "test" or anything else
for development. Celery workers and manage.py both point at
`config.settings` and land here.
"""

import os

env = os.getenv("DJANGO_ENV", "development").strip().lower()

if env == "production":
    from .production import *
elif env == "test":
    from .test import *
else:
    from .development import *
