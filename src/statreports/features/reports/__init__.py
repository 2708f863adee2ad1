"""Statistical report endpoints for statreports

This package turns quarterly series data (production, financials, regional
chemical statistics) into chart-ready report payloads. Every report is
requested over a year/quarter range and a product or company selection;
missing range bounds default to the data available for the dataset.

Access is granted per subscription package: statistical, olefins and
Polish chemicals. Product selections are further limited to the products
on the user's subscription, while administrators see everything.

Route handlers delegate to service functions, which drive the range,
selection, fetch, aggregation and chart projection steps."""
