from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple, Union
import csv
import io
import logging

import pandas as pd

from config import TableSchema

logger = logging.getLogger(__name__)

# pandas' default NA tokens, applied to numeric columns only. Text columns
# treat just the empty field as missing so ids like "NA" or "None" survive.
NUMERIC_NA_VALUES = [
    "", "#N/A", "#N/A N/A", "#NA", "-1.#IND", "-1.#QNAN", "-NaN", "-nan",
    "1.#IND", "1.#QNAN", "<NA>", "N/A", "NA", "NULL", "NaN", "None", "n/a",
    "nan", "null",
]


class MalformedInputError(ValueError):
    """Raised when a file cannot be read as a table of the expected shape."""

    def __init__(self, file_name: str, line_numbers: list[int], detail: Optional[str] = None):
        self.file_name = file_name
        self.line_numbers = list(line_numbers)
        self.detail = detail
        message = f"Error parsing CSV file '{file_name}'"
        if self.line_numbers:
            message += f". Problematic lines: {', '.join(str(n) for n in self.line_numbers)}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class FileSource(ABC):
    """Abstract handle on one of the three input files.

    Lets the pipeline read uploads from the browser and files from disk
    (sample data, tests) through the same interface.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name used in error messages."""
        pass

    @abstractmethod
    def read_bytes(self) -> bytes:
        """Return the raw file content."""
        pass

    def read_text(self) -> str:
        return self.read_bytes().decode("utf-8-sig")


class UploadedFileSource(FileSource):
    """Wraps a Streamlit ``UploadedFile`` (or anything with ``getvalue``)."""

    def __init__(self, uploaded_file):
        self._file = uploaded_file

    @property
    def name(self) -> str:
        return getattr(self._file, "name", "uploaded file")

    def read_bytes(self) -> bytes:
        return self._file.getvalue()


class LocalFileSource(FileSource):
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class BytesFileSource(FileSource):
    def __init__(self, content: Union[bytes, str], name: str = "data.csv"):
        self._content = content.encode("utf-8") if isinstance(content, str) else content
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def read_bytes(self) -> bytes:
        return self._content


def get_file_source(obj) -> FileSource:
    """Factory turning an upload, a path or raw content into a ``FileSource``."""
    if isinstance(obj, FileSource):
        return obj
    if isinstance(obj, (str, Path)):
        return LocalFileSource(obj)
    if isinstance(obj, bytes):
        return BytesFileSource(obj)
    if hasattr(obj, "getvalue"):
        return UploadedFileSource(obj)
    raise TypeError(f"Unsupported file object: {type(obj).__name__}")


def scan_lines(text: str) -> Tuple[list[str], list[int]]:
    """Check the shape of every line against the header.

    Returns the header fields and the 1-based line numbers whose field count
    differs from it. An unterminated quote is reported at the line where the
    reader gave up. Empty lines are ignored; a line holding only spaces is
    read as a single empty field and counts as malformed.
    """
    reader = csv.reader(io.StringIO(text), strict=True, skipinitialspace=True)
    header = []
    bad_lines = []

    while True:
        try:
            fields = next(reader)
        except StopIteration:
            break
        except csv.Error:
            bad_lines.append(reader.line_num)
            break

        if not fields:
            continue
        if not header:
            header = [f.strip() for f in fields]
            continue
        if len(fields) != len(header):
            bad_lines.append(reader.line_num)

    return header, bad_lines


def parse_csv(source: FileSource, schema: TableSchema) -> pd.DataFrame:
    """Parse one input file into a DataFrame addressed by header name.

    Numeric-looking columns are inferred by pandas; the schema's text
    columns stay strings. Blank lines produce no rows. Any structurally broken
    line fails the whole file with ``MalformedInputError``.
    """
    try:
        text = source.read_text()
    except UnicodeDecodeError as e:
        raise MalformedInputError(source.name, [], detail=f"not valid UTF-8: {e}") from e

    if not text.strip():
        logger.warning("%s is empty", source.name)
        return pd.DataFrame(columns=list(schema.columns))

    header, bad_lines = scan_lines(text)
    if bad_lines:
        logger.error("Error parsing CSV file %s. Problematic lines: %s", source.name, bad_lines)
        raise MalformedInputError(source.name, bad_lines)

    text_columns = [col for col in header if col in schema.text_columns]
    na_values = {col: ([""] if col in text_columns else NUMERIC_NA_VALUES) for col in header}

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype={col: str for col in text_columns},
            keep_default_na=False,
            na_values=na_values,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error("Error parsing CSV file %s: %s", source.name, e)
        raise MalformedInputError(source.name, [], detail=str(e)) from e

    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in schema.columns if c not in df.columns]
    required_missing = [c for c in missing if c in schema.required_columns]
    if required_missing:
        logger.warning(
            "%s is missing expected column(s) %s; affected rows will be dropped",
            source.name, ", ".join(required_missing),
        )
    for col in missing:
        df[col] = pd.NA

    logger.info("Parsed %s: %d rows", source.name, len(df))
    return df
