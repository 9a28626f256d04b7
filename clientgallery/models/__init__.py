# Package init for clientgallery.models
from .gallery import Download as Download
from .gallery import Favorite as Favorite
from .gallery import Gallery as Gallery
from .gallery import GalleryAccess as GalleryAccess
from .gallery import GalleryImage as GalleryImage
from .logging import AppErrorLog as AppErrorLog
from .rate_limit import RateLimitCounter as RateLimitCounter
from .user import Base as Base  # explicit re-export
from .user import User as User
from .user import UserSession as UserSession
