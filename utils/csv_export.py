import csv
from io import StringIO
from typing import Iterable, Iterator, Sequence

from fastapi.responses import StreamingResponse


def iter_csv(header: Sequence[str], rows: Iterable[Sequence]) -> Iterator[str]:
    """Yield CSV text one line at a time."""
    buffer = StringIO()
    writer = csv.writer(buffer)

    writer.writerow(header)
    yield buffer.getvalue()
    buffer.seek(0)
    buffer.truncate(0)

    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
        yield buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)


def csv_response(filename: str, header: Sequence[str], rows: Iterable[Sequence]) -> StreamingResponse:
    return StreamingResponse(
        iter_csv(header, rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
