from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from wallet.api import create_app
from wallet.config import get_settings

app = create_app(get_settings())

handler = Mangum(app)
