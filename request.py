class Request:
    """
    Represents a request travelling through the simulated queue.

    A request waits in the queue until it is picked for service. While
    waiting only its timeout budget runs down; while in service both its
    budget and its remaining work run down, one unit per tick.
    """
    def __init__(self, work, timeout, request_id=None, arrival_tick=None):
        self.id = request_id
        self.arrival_tick = arrival_tick
        self.remaining_work = work
        self.remaining_budget = timeout

    def tick(self):
        """Spend one tick of the timeout budget."""
        self.remaining_budget -= 1

    def work(self):
        """Perform one tick of work."""
        self.remaining_work -= 1

    def timed_out(self):
        return self.remaining_budget <= 0

    def done(self):
        return self.remaining_work <= 0

    def __repr__(self):
        return (f"Request(id={self.id}, work={self.remaining_work}, "
                f"budget={self.remaining_budget})")
