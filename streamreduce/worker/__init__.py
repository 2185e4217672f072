"""Map and reduce executors, emitters and the external sort."""
