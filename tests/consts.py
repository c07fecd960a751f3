TEST_BUCKET_NAME = "test-nl-files-api"
TEST_REGION = "us-east-1"
