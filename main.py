import os
os.environ['TZ'] = 'Europe/Athens'

import logging

from app import app, is_production

logging.basicConfig(level=logging.INFO)

app.config.update({
    'DEBUG': False,
    'JSON_SORT_KEYS': False,
    'JSONIFY_PRETTYPRINT_REGULAR': False,
})

if is_production:
    logging.info("Book intake service starting in production mode")

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
