import os
import sys
import math
import requests

# Configuration
BASE_URL = os.environ.get("PLUPLOADER_URL", "http://localhost:8000")
UPLOAD_URL = f"{BASE_URL}/upload"
TEST_FILE = "test_file.bin"     # File to upload
CHUNK_SIZE = 1024 * 1024        # 1MB chunks

# Helper functions
def create_test_file(filename: str, size: int):
    """Write a file of random bytes to upload"""
    with open(filename, "wb") as f:
        f.write(os.urandom(size))

def upload_file(filename: str, chunk_size: int = CHUNK_SIZE):
    """Upload file in Plupload-style chunks, one multipart request per chunk"""
    file_size = os.path.getsize(filename)
    name = os.path.basename(filename)
    chunks = max(1, math.ceil(file_size / chunk_size))
    print(f"Starting upload of {name} ({file_size} bytes, {chunks} chunks)")

    with open(filename, 'rb') as f:
        for chunk in range(chunks):
            chunk_data = f.read(chunk_size)
            try:
                response = requests.post(
                    UPLOAD_URL,
                    data={"name": name, "chunk": chunk, "chunks": chunks},
                    files={"file": ("blob", chunk_data, "application/octet-stream")},
                )
                body = response.json()
                if response.status_code != 200 or "error" in body:
                    print(f"Chunk {chunk} rejected ({response.status_code}): {body}")
                    return False
                print(f"Uploaded chunk {chunk + 1}/{chunks}: {body}")

            except requests.exceptions.RequestException as e:
                print(f"Failed to upload chunk {chunk}: {str(e)}")
                return False

    print("Upload completed successfully")
    return True

def check_status(name: str, chunks: int):
    """Check progress of a pending upload"""
    response = requests.get(f"{BASE_URL}/upload/status", params={"name": name, "chunks": chunks})
    if response.status_code == 404:
        print(f"No pending upload for {name}")
        return None
    response.raise_for_status()
    return response.json()

if __name__ == "__main__":
    size = int(sys.argv[1]) if len(sys.argv) > 1 else 3 * CHUNK_SIZE + 123
    create_test_file(TEST_FILE, size)
    try:
        ok = upload_file(TEST_FILE)
        print("Pending after upload:", check_status(TEST_FILE, max(1, math.ceil(size / CHUNK_SIZE))))
    finally:
        os.remove(TEST_FILE)
    sys.exit(0 if ok else 1)
