import typer
import requests
import os


app = typer.Typer(help="Animalitos predictor")
BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
API_KEY = os.getenv("API_KEY")


def _headers():
    h = {}
    if API_KEY:
        h["X-API-Key"] = API_KEY
    return h


def _get(path: str, **params):
    r = requests.get(f"{BASE}{path}", params=params or None, headers=_headers(), timeout=15)
    if r.status_code >= 400:
        typer.echo(f"Error {r.status_code}: {r.text}", err=True)
        raise typer.Exit(1)
    return r.json()


@app.command()
def serve(host: str = "127.0.0.1", port: int = 8000, reload: bool = False):
    """Run the API server with the background poller."""
    import uvicorn
    uvicorn.run("animalitos.api.main:app", host=host, port=port, reload=reload)


@app.command()
def predictions():
    data = _get("/api/predictions")
    if data["status"] != "ok":
        typer.echo("No prediction yet (insufficient data)")
        return
    color = data["predicted_color"]
    typer.echo(f"Color: {color['color_category']} {color['probability_percent']}% ({color['rationale']})")
    for i, c in enumerate(data["candidate_set"], 1):
        typer.echo(f"{i:2d}. {c['numeric_code']:02d} {c['display_name']:<12} {c['color_category']:<6} "
                   f"score {c['score']:.0f}  {c['probability']:.1f}%")


@app.command()
def last(limit: int = 10):
    for r in _get("/api/last-results", limit=limit):
        mark = {True: "hit", False: "miss", None: "-"}[r["number_hit"]]
        typer.echo(f"{r['time_label']:>8}  {r['numeric_code']:02d} {r['display_name']:<12} "
                   f"{r['color_category']:<6} {mark}")


@app.command()
def accuracy():
    data = _get("/api/effectiveness")
    if data["status"] != "ok":
        typer.echo("Accuracy: insufficient data")
        return
    typer.echo(f"Numbers:  {data['number_accuracy_percent']}% ({data['number_hits']}/{data['sample_size']})")
    typer.echo(f"Colors:   {data['color_accuracy_percent']}% ({data['color_hits']}/{data['sample_size']})")
    typer.echo(f"Combined: {data['combined_accuracy_percent']}%")


@app.command()
def stats():
    data = _get("/api/stats")
    typer.echo(f"Stored results: {data['total_results']}  unique animals: {data['unique_animals']}  "
               f"last update: {data['last_update'] or 'never'}")


@app.command()
def animal(number: int):
    typer.echo(_get(f"/api/animal-history/{number}"))


@app.command("force-update")
def force_update():
    r = requests.post(f"{BASE}/api/force-update", headers=_headers(), timeout=30)
    typer.echo(r.json())


if __name__ == "__main__":
    app()
