chinook_notes = [
    "Each 'Invoice' is linked to one 'Customer' via 'Invoice.CustomerId'.",
    "'Customer.SupportRepId' is a foreign key to 'Employee.EmployeeId' (the sales agent responsible for that customer).",
    "Each 'InvoiceLine' is linked to its 'Invoice' via 'InvoiceLine.InvoiceId' and to the sold 'Track' via 'TrackId'.",
    "A 'Track' belongs to an 'Album' ('Track.AlbumId') and to a 'Genre' ('Track.GenreId').",
    "'Track.Milliseconds' is the track length; divide by 60000 for minutes.",
    "Line revenue is 'InvoiceLine.UnitPrice * InvoiceLine.Quantity'; 'Invoice.Total' is the invoice sum.",
    "Intermediate results are used inline as subqueries, bound once per statement as CTEs, "
    "or stored as session temporary tables that later statements can join.",
]


strategy_notes = {
    "inline": "Subquery embedded where it is used. No name, nothing kept after the statement.",
    "named": "WITH ... AS (...) binding. Referenced any number of times, gone after the statement.",
    "materialized": "CREATE TEMPORARY TABLE ... AS. Snapshot kept until the session ends.",
}
