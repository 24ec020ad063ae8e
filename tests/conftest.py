import io
from types import SimpleNamespace

import pytest
from PIL import Image


class FakeUpload:
    """Stand-in for a Streamlit UploadedFile."""

    def __init__(self, name, type, data, file_id=None):
        self.name = name
        self.type = type
        self._data = data
        self.file_id = file_id

    def getvalue(self):
        return self._data


class FakeResponses:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(
            output=[
                SimpleNamespace(
                    type="message",
                    content=[SimpleNamespace(type="output_text", text=self.text)],
                )
            ],
            usage=SimpleNamespace(input_tokens=1200, output_tokens=80),
            status="completed",
        )


class FakeOpenAI:
    def __init__(self, text=None, error=None):
        self.responses = FakeResponses(text=text, error=error)


def make_png(size=(800, 600), color=(255, 255, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table

    def insert(self, rows):
        self.client.inserted.append((self.table, rows))
        return self

    def select(self, columns):
        self.client.selects.append((self.table, columns))
        return self

    def order(self, column, desc=False):
        self.client.orders.append((self.table, column, desc))
        return self

    def execute(self):
        error = self.client.errors.get(self.table)
        if error:
            raise error
        return SimpleNamespace(data=self.client.rows.get(self.table, [{"id": "row-1"}]))


class FakeBucket:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def upload(self, path, file, file_options=None):
        if self.client.upload_error:
            raise self.client.upload_error
        self.client.uploads.append((self.name, path, file, file_options))

    def get_public_url(self, path):
        return f"https://example.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        self.client.removed.append((self.name, paths))


class FakeStorage:
    def __init__(self, client):
        self.client = client

    def from_(self, name):
        return FakeBucket(self.client, name)


class FakeSupabase:
    """Records table and storage calls made through the supabase client API."""

    def __init__(self, rows=None, errors=None, upload_error=None):
        self.rows = rows or {}
        self.errors = errors or {}
        self.upload_error = upload_error
        self.inserted = []
        self.selects = []
        self.orders = []
        self.uploads = []
        self.removed = []
        self.storage = FakeStorage(self)

    def table(self, name):
        return FakeQuery(self, name)
