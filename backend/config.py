import os


def _int_list(raw):
    return tuple(int(part) for part in raw.split(',') if part.strip())


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///memory_match.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173',
    ).split(',')
    # Pair counts offered to the player
    PAIR_CHOICES = _int_list(os.environ.get('PAIR_CHOICES', '4,6,8,10,12'))
    DEFAULT_PAIRS = int(os.environ.get('DEFAULT_PAIRS', '8'))
    # Settle delays (ms). Mismatch must stay longer than match.
    MATCH_DELAY_MS = int(os.environ.get('MATCH_DELAY_MS', '300'))
    MISMATCH_DELAY_MS = int(os.environ.get('MISMATCH_DELAY_MS', '900'))
    TIMER_TICK_MS = int(os.environ.get('TIMER_TICK_MS', '50'))
    # Image catalog
    POKEAPI_URL = os.environ.get('POKEAPI_URL', 'https://pokeapi.co/api/v2/pokemon')
    POKEMON_MAX_ID = int(os.environ.get('POKEMON_MAX_ID', '898'))
    ASSET_TIMEOUT_SEC = float(os.environ.get('ASSET_TIMEOUT_SEC', '5'))
    ASSET_ATTEMPT_MULTIPLIER = int(os.environ.get('ASSET_ATTEMPT_MULTIPLIER', '12'))
    # Overall budget for one acquisition (sec). 0 disables.
    ASSET_FETCH_BUDGET_SEC = float(os.environ.get('ASSET_FETCH_BUDGET_SEC', '60'))
    # Persisted key names
    HIGHSCORE_KEY = 'memory_highscore_pokemon'
    LAST_USER_KEY = 'memory_last_user'
