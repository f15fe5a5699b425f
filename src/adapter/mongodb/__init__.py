DATABASE_NAME = 'users_service'
USERS_COLLECTION_NAME = 'users'
