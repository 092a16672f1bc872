# API Routers
from hmis.routers import auth, patients, doctors, pathology, rooms, bills, users, events

__all__ = ['auth', 'patients', 'doctors', 'pathology', 'rooms', 'bills', 'users', 'events']
