import matplotlib.pyplot as plt


class SimulationVisualizer:
    """
    Визуализатор прогона симуляции кеша изображений:
      - plot_hit_rate: накопленная доля попаданий во времени
      - plot_occupancy: записи индекса и резидентные ключи окна
      - plot_evictions: накопленные предзагрузки и вытеснения
    """

    def __init__(self, payload: dict):
        self.samples = payload.get("samples", [])
        self.summary = payload.get("summary", {})
        self.times = [s["time"] for s in self.samples]

    def _series(self, name: str):
        return [s.get(name, 0) for s in self.samples]

    def plot_hit_rate(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(12, 3))
        ax.plot(self.times, self._series("hit_rate"), color="#4caf50")
        ax.set_ylim(0, 1)
        ax.set_xlabel("Время (с)")
        ax.set_ylabel("Hit rate")
        ax.set_title("Доля попаданий в кеш")
        return ax

    def plot_occupancy(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(12, 3))
        ax.step(self.times, self._series("total_entries"), where="post", label="Записи индекса")
        ax.step(self.times, self._series("memory_entries"), where="post", label="Окно памяти")
        ax.set_xlabel("Время (с)")
        ax.set_ylabel("Ключей")
        ax.set_title("Заполненность кеша")
        ax.legend(loc="upper left")
        return ax

    def plot_evictions(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(12, 3))
        ax.plot(self.times, self._series("total_preloaded"), label="Предзагружено")
        ax.plot(self.times, self._series("evictions"), label="Вытеснено", color="#f44336")
        ax.set_xlabel("Время (с)")
        ax.set_title("Предзагрузки и вытеснения")
        ax.legend(loc="upper left")
        return ax

    def figure(self):
        fig, axes = plt.subplots(3, 1, figsize=(12, 9), constrained_layout=True)
        self.plot_hit_rate(axes[0])
        self.plot_occupancy(axes[1])
        self.plot_evictions(axes[2])
        return fig

    def save(self, path: str) -> None:
        fig = self.figure()
        fig.savefig(path)
        plt.close(fig)

    def show_all(self):
        self.figure()
        plt.show()
