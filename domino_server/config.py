import os


class Config:
    """Base configuration class"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dominoes-secret-key-change-in-production'
    DEBUG = False
    TESTING = False

    # Database configuration; persistence is disabled when unset
    DATABASE_URL = os.environ.get('DATABASE_URL')
    SQLALCHEMY_ECHO = False

    # Fallback region for secrets-manager:// database URLs that name none
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # Application specific settings
    MAX_ROOMS_IN_MEMORY = int(os.environ.get('MAX_ROOMS_IN_MEMORY', '1000'))

    # Socket.IO transport
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')

    # AI pacing: each AI move waits a random delay in this range (seconds)
    AI_MOVE_DELAY_MIN = float(os.environ.get('AI_MOVE_DELAY_MIN', '0.8'))
    AI_MOVE_DELAY_MAX = float(os.environ.get('AI_MOVE_DELAY_MAX', '1.5'))
    # 'background' runs AI turns as Socket.IO background tasks, 'immediate' inline
    AI_TURN_SCHEDULER = os.environ.get('AI_TURN_SCHEDULER', 'background')
    DEFAULT_AI_DIFFICULTY = os.environ.get('DEFAULT_AI_DIFFICULTY', 'medium')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SECRET_KEY = 'dev-secret-key-not-for-production'


class ProductionConfig(Config):
    """Production configuration for AWS deployment"""
    DEBUG = False
    SECRET_KEY = os.environ.get('SECRET_KEY')

    @classmethod
    def validate(cls):
        """Validate production configuration at runtime"""
        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if cls.AI_MOVE_DELAY_MIN > cls.AI_MOVE_DELAY_MAX:
            raise ValueError("AI_MOVE_DELAY_MIN must not exceed AI_MOVE_DELAY_MAX")


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    DATABASE_URL = None
    AI_MOVE_DELAY_MIN = 0.0
    AI_MOVE_DELAY_MAX = 0.0
    AI_TURN_SCHEDULER = 'immediate'
    SOCKETIO_ASYNC_MODE = 'threading'


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
