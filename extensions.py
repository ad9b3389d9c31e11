from flask_cors import CORS
from flask_mail import Mail
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

mail = Mail()
cors = CORS()

# In-memory rate limiter (sufficient for single-instance deployments).
# Storage and the on/off switch come from RATELIMIT_* config keys.
limiter = Limiter(get_remote_address)
