"""SQLAlchemy Core handles on the Chinook tables referenced by the exercises.

The database itself is owned elsewhere; these definitions only mirror the
columns the queries touch (names as in the Chinook SQLite/MySQL release).
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, MetaData, Numeric, String, Table

metadata = MetaData()

Genre = Table(
    "Genre", metadata,
    Column("GenreId", Integer, primary_key=True),
    Column("Name", String(120)),
)

Album = Table(
    "Album", metadata,
    Column("AlbumId", Integer, primary_key=True),
    Column("Title", String(160)),
    Column("ArtistId", Integer),
)

Track = Table(
    "Track", metadata,
    Column("TrackId", Integer, primary_key=True),
    Column("Name", String(200)),
    Column("AlbumId", Integer, ForeignKey("Album.AlbumId")),
    Column("MediaTypeId", Integer),
    Column("GenreId", Integer, ForeignKey("Genre.GenreId")),
    Column("Composer", String(220)),
    Column("Milliseconds", Integer),
    Column("Bytes", Integer),
    Column("UnitPrice", Numeric(10, 2)),
)

Employee = Table(
    "Employee", metadata,
    Column("EmployeeId", Integer, primary_key=True),
    Column("LastName", String(20)),
    Column("FirstName", String(20)),
    Column("Title", String(30)),
    Column("ReportsTo", Integer, ForeignKey("Employee.EmployeeId")),
)

Customer = Table(
    "Customer", metadata,
    Column("CustomerId", Integer, primary_key=True),
    Column("FirstName", String(40)),
    Column("LastName", String(20)),
    Column("Country", String(40)),
    Column("SupportRepId", Integer, ForeignKey("Employee.EmployeeId")),
)

Invoice = Table(
    "Invoice", metadata,
    Column("InvoiceId", Integer, primary_key=True),
    Column("CustomerId", Integer, ForeignKey("Customer.CustomerId")),
    Column("InvoiceDate", DateTime),
    Column("BillingCountry", String(40)),
    Column("Total", Numeric(10, 2)),
)

InvoiceLine = Table(
    "InvoiceLine", metadata,
    Column("InvoiceLineId", Integer, primary_key=True),
    Column("InvoiceId", Integer, ForeignKey("Invoice.InvoiceId")),
    Column("TrackId", Integer, ForeignKey("Track.TrackId")),
    Column("UnitPrice", Numeric(10, 2)),
    Column("Quantity", Integer),
)

REQUIRED_TABLES = tuple(metadata.tables)
