"""
Serverless entrypoint: the same app, wrapped by Mangum.

With the memory backend each warm container keeps its own files, and they
disappear when the container is recycled. Use `aws-prod` with a bucket for
anything that must survive.
"""
from mangum import Mangum

from nl_files_api.main import create_app
from nl_files_api.settings import get_settings

app = create_app(get_settings())

# Lifespan events are not used; storage is built inside create_app.
handler = Mangum(app, lifespan="off")

lambda_handler = handler
