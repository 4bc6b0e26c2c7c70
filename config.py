import os


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///parking.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEFAULT_TOTAL_SPOTS = 50
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
