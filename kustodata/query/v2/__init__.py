"""Reading and decoding the frames of fragmented v2 Kusto query responses."""